from sqlalchemy import Column, Text, TIMESTAMP, Integer, Float, Index, UniqueConstraint
from sqlalchemy.sql import func

from .base import Base, JSONType


class WeightAdjustment(Base):
    """Weight vector resolved for one scoring request and how it was derived."""
    __tablename__ = 'weight_adjustments'

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Text, nullable=False)
    resume_id = Column(Text, nullable=True)
    source = Column(Text, nullable=False, default='static')
    industry = Column(Text, nullable=True)
    role = Column(Text, nullable=True)
    seniority = Column(Text, nullable=True)
    weights = Column(JSONType, nullable=False)
    confidence = Column(Float, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index('idx_weight_adjustments_job', 'job_id'),
    )


class AgentExecutionMetric(Base):
    __tablename__ = 'agent_execution_metrics'

    id = Column(Integer, primary_key=True, autoincrement=True)
    fork_id = Column(Text, nullable=True)
    agent_type = Column(Text, nullable=False)
    resume_id = Column(Text, nullable=False)
    job_id = Column(Text, nullable=False)
    status = Column(Text, nullable=False)
    score = Column(Float, nullable=True)
    quality_score = Column(Float, nullable=True)
    processing_time_ms = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index('idx_agent_execution_metrics_type', 'agent_type'),
    )


class MultiAgentScore(Base):
    """Latest composite score per (resume, job) pair."""
    __tablename__ = 'multi_agent_scores'

    id = Column(Integer, primary_key=True, autoincrement=True)
    resume_id = Column(Text, nullable=False)
    job_id = Column(Text, nullable=False)
    composite_score = Column(Float, nullable=False)
    agent_scores = Column(JSONType, default=dict)
    weights = Column(JSONType, default=dict)
    agents_completed = Column(Integer, default=0)
    processing_time_ms = Column(Integer, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('resume_id', 'job_id', name='uq_multi_agent_scores_pair'),
    )
