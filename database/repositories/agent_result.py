import logging
from typing import List, Type

from sqlalchemy import select, func

from database.models import AgentResultMixin
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class AgentResultRepository(BaseRepository):
    def save_result(self, record: AgentResultMixin) -> AgentResultMixin:
        """Insert one result row; a row already stored for the fork is kept as is."""
        model = type(record)
        existing = self.db.execute(
            select(model).where(model.fork_id == record.fork_id)
        ).scalar_one_or_none()
        if existing is not None:
            logger.warning(f"Result for fork {record.fork_id} already stored in {model.__tablename__}")
            return existing

        return self._add(record)

    def count_for_fork(self, model: Type[AgentResultMixin], fork_id: str) -> int:
        stmt = select(func.count()).select_from(model).where(model.fork_id == fork_id)
        return self.db.execute(stmt).scalar_one()

    def get_results_for_pair(self, model: Type[AgentResultMixin], resume_id: str, job_id: str) -> List[AgentResultMixin]:
        stmt = (
            select(model)
            .where(model.resume_id == resume_id, model.job_id == job_id)
            .order_by(model.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())
