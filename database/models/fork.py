from sqlalchemy import Column, Text, TIMESTAMP, Integer, Index
from sqlalchemy.sql import func

from .base import Base


class AgentFork(Base):
    """
    Durable record of one isolated execution context.

    One row per (strategy, resume, job) scoring attempt. The in-memory fork
    registry is authoritative while the process runs; this table is the
    audit trail used for stats and retention cleanup.
    """
    __tablename__ = 'agent_forks'

    id = Column(Integer, primary_key=True, autoincrement=True)
    fork_id = Column(Text, nullable=False, unique=True)
    agent_type = Column(Text, nullable=False)

    # Both URLs are stored with the password masked
    parent_db_url = Column(Text, nullable=True)
    fork_db_url = Column(Text, nullable=True)
    isolation_mode = Column(Text, nullable=True)

    resume_id = Column(Text, nullable=False)
    job_id = Column(Text, nullable=False)

    status = Column(Text, nullable=False, default='pending')
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    started_at = Column(TIMESTAMP(timezone=True), nullable=True)
    completed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    processing_time_ms = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_agent_forks_status', 'status'),
        Index('idx_agent_forks_resume_job', 'resume_id', 'job_id'),
        Index('idx_agent_forks_agent_type', 'agent_type'),
    )
