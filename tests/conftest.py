"""
Pytest configuration and fixtures.

Database fixtures build a file-backed SQLite database per test from the ORM
metadata. Fork isolation falls back to logical forks on SQLite, which is
the mode these tests exercise end to end.
"""

import pytest
from sqlalchemy import create_engine

from core.config_loader import ForkConfig
from database.database import build_session_factory, db_session_scope
from database.models import Base, Resume, Job


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "db: marks tests as requiring database (deselect with '-m \"not db\"')"
    )


@pytest.fixture
def sqlite_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'scoring.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return build_session_factory(sqlite_engine)


@pytest.fixture
def seeded_session_factory(session_factory):
    """Session factory over a database holding two resumes and one job."""
    with db_session_scope(session_factory) as session:
        session.add_all([
            Resume(
                resume_id="R1",
                candidate_name="Ada",
                raw_text="Senior backend engineer. Python, PostgreSQL, Docker. "
                         "Bachelor of Science in Computer Science.",
                skills=["Python", "PostgreSQL", "Docker"],
                years_experience=6,
                education_level="Bachelor",
                certifications=["AWS Solutions Architect"],
            ),
            Resume(
                resume_id="R2",
                candidate_name="Grace",
                raw_text="Frontend developer working with React and TypeScript.",
                skills=["React", "TypeScript"],
                years_experience=2,
                education_level="Associate",
                certifications=[],
            ),
            Job(
                job_id="J1",
                title="Backend Engineer",
                description="Build Python APIs on PostgreSQL. Bachelor degree required.",
                required_skills=["Python", "PostgreSQL", "Kubernetes"],
                required_years=5,
                required_education="Bachelor",
                required_certifications=["AWS Solutions Architect"],
            ),
        ])
    return session_factory


@pytest.fixture
def fork_config():
    return ForkConfig(max_concurrent_forks=10, isolation_modes=["zero_copy", "template", "logical"])
