from sqlalchemy.orm import Session

from database.repositories import (
    BaseRepository,
    ForkRepository,
    SubjectRepository,
    AgentResultRepository,
    AnalyticsRepository,
)


class ScoringRepository(BaseRepository):
    """All repositories of one unit of work, sharing a single Session."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.forks = ForkRepository(db)
        self.subjects = SubjectRepository(db)
        self.results = AgentResultRepository(db)
        self.analytics = AnalyticsRepository(db)
