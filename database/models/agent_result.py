from sqlalchemy import Column, Text, TIMESTAMP, Integer, Float
from sqlalchemy.sql import func

from .base import Base, JSONType


class AgentResultMixin:
    """Columns shared by every per-strategy result table."""
    id = Column(Integer, primary_key=True, autoincrement=True)
    fork_id = Column(Text, nullable=False, unique=True)
    resume_id = Column(Text, nullable=False)
    job_id = Column(Text, nullable=False)
    score = Column(Float, nullable=False)
    processing_time_ms = Column(Integer, nullable=True)
    details = Column(JSONType, default=dict)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())


class SkillAgentResult(AgentResultMixin, Base):
    __tablename__ = 'skill_agent_results'

    matched_skills = Column(JSONType, default=list)
    missing_skills = Column(JSONType, default=list)


class ExperienceAgentResult(AgentResultMixin, Base):
    __tablename__ = 'experience_agent_results'

    candidate_years = Column(Float, nullable=True)
    required_years = Column(Float, nullable=True)


class EducationAgentResult(AgentResultMixin, Base):
    __tablename__ = 'education_agent_results'

    candidate_level = Column(Text, nullable=True)
    required_level = Column(Text, nullable=True)


class CertificationAgentResult(AgentResultMixin, Base):
    __tablename__ = 'certification_agent_results'

    matched_certifications = Column(JSONType, default=list)
    missing_certifications = Column(JSONType, default=list)


class SemanticAgentResult(AgentResultMixin, Base):
    __tablename__ = 'semantic_agent_results'

    similarity = Column(Float, nullable=True)
