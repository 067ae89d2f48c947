import logging
from datetime import datetime
from typing import List, Optional, Dict, Any

from sqlalchemy import select, delete, func, case

from database.models import AgentFork
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class ForkRepository(BaseRepository):
    def get_by_fork_id(self, fork_id: str) -> Optional[AgentFork]:
        stmt = select(AgentFork).where(AgentFork.fork_id == fork_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_fork(
        self,
        fork_id: str,
        agent_type: str,
        resume_id: str,
        job_id: str,
        parent_db_url: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> AgentFork:
        record = AgentFork(
            fork_id=fork_id,
            agent_type=agent_type,
            resume_id=resume_id,
            job_id=job_id,
            parent_db_url=parent_db_url,
            status='pending',
        )
        if created_at is not None:
            record.created_at = created_at
        return self._add(record)

    def mark_active(
        self,
        fork_id: str,
        started_at: datetime,
        fork_db_url: Optional[str],
        isolation_mode: Optional[str],
    ) -> bool:
        record = self.get_by_fork_id(fork_id)
        if record is None:
            return False
        record.status = 'active'
        record.started_at = started_at
        record.fork_db_url = fork_db_url
        record.isolation_mode = isolation_mode
        return True

    def mark_terminal(
        self,
        fork_id: str,
        status: str,
        completed_at: datetime,
        processing_time_ms: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> bool:
        record = self.get_by_fork_id(fork_id)
        if record is None:
            logger.warning(f"No durable record for fork {fork_id}")
            return False
        record.status = status
        record.completed_at = completed_at
        record.processing_time_ms = processing_time_ms
        record.error_message = error_message
        return True

    def delete_terminal_before(self, cutoff: datetime) -> int:
        """Delete completed/failed forks whose completion predates cutoff."""
        stmt = delete(AgentFork).where(
            AgentFork.status.in_(['completed', 'failed']),
            AgentFork.completed_at < cutoff,
        )
        result = self.db.execute(stmt)
        return result.rowcount or 0

    def get_forks_for_pair(self, resume_id: str, job_id: str) -> List[AgentFork]:
        stmt = (
            select(AgentFork)
            .where(AgentFork.resume_id == resume_id, AgentFork.job_id == job_id)
            .order_by(AgentFork.created_at.desc(), AgentFork.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_active_forks(self) -> List[AgentFork]:
        stmt = (
            select(AgentFork)
            .where(AgentFork.status == 'active')
            .order_by(AgentFork.started_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_agent_performance(self) -> List[Dict[str, Any]]:
        """Per-strategy execution counts and average processing time."""
        stmt = (
            select(
                AgentFork.agent_type,
                func.count(AgentFork.id),
                func.sum(case((AgentFork.status == 'completed', 1), else_=0)),
                func.sum(case((AgentFork.status == 'failed', 1), else_=0)),
                func.avg(AgentFork.processing_time_ms),
            )
            .where(AgentFork.status.in_(['completed', 'failed']))
            .group_by(AgentFork.agent_type)
            .order_by(AgentFork.agent_type)
        )

        performance = []
        for agent_type, total, completed, failed, avg_ms in self.db.execute(stmt).all():
            total = int(total or 0)
            completed = int(completed or 0)
            performance.append({
                'agent_type': agent_type,
                'total_executions': total,
                'successful_executions': completed,
                'failed_executions': int(failed or 0),
                'success_rate': round(completed / total, 4) if total else 0.0,
                'avg_processing_time_ms': round(float(avg_ms), 2) if avg_ms is not None else None,
            })
        return performance
