from sqlalchemy import Column, Text, TIMESTAMP, Float
from sqlalchemy.sql import func

from .base import Base, JSONType


class Resume(Base):
    __tablename__ = 'resumes'

    resume_id = Column(Text, primary_key=True)
    candidate_name = Column(Text, nullable=True)
    raw_text = Column(Text, nullable=True)
    skills = Column(JSONType, default=list)
    years_experience = Column(Float, nullable=True)
    education_level = Column(Text, nullable=True)
    certifications = Column(JSONType, default=list)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())


class Job(Base):
    __tablename__ = 'jobs'

    job_id = Column(Text, primary_key=True)
    title = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    required_skills = Column(JSONType, default=list)
    required_years = Column(Float, nullable=True)
    required_education = Column(Text, nullable=True)
    required_certifications = Column(JSONType, default=list)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
