from database.repositories.base import BaseRepository
from database.repositories.fork import ForkRepository
from database.repositories.subject import SubjectRepository
from database.repositories.agent_result import AgentResultRepository
from database.repositories.analytics import AnalyticsRepository

__all__ = [
    'BaseRepository',
    'ForkRepository',
    'SubjectRepository',
    'AgentResultRepository',
    'AnalyticsRepository',
]
