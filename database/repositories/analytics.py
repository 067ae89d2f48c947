import logging
from typing import Dict, Optional

from sqlalchemy import select

from database.models import WeightAdjustment, AgentExecutionMetric, MultiAgentScore
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class AnalyticsRepository(BaseRepository):
    def add_weight_adjustment(
        self,
        job_id: str,
        weights: Dict[str, float],
        source: str,
        resume_id: Optional[str] = None,
        industry: Optional[str] = None,
        role: Optional[str] = None,
        seniority: Optional[str] = None,
        confidence: Optional[float] = None,
    ) -> WeightAdjustment:
        record = WeightAdjustment(
            job_id=job_id,
            resume_id=resume_id,
            source=source,
            industry=industry,
            role=role,
            seniority=seniority,
            weights=dict(weights),
            confidence=confidence,
        )
        return self._add(record)

    def add_execution_metric(self, **fields) -> AgentExecutionMetric:
        record = AgentExecutionMetric(**fields)
        return self._add(record)

    def upsert_composite_score(
        self,
        resume_id: str,
        job_id: str,
        composite_score: float,
        agent_scores: Dict[str, float],
        weights: Dict[str, float],
        agents_completed: int,
        processing_time_ms: Optional[int] = None,
    ) -> MultiAgentScore:
        stmt = select(MultiAgentScore).where(
            MultiAgentScore.resume_id == resume_id,
            MultiAgentScore.job_id == job_id,
        )
        existing = self.db.execute(stmt).scalar_one_or_none()

        if existing:
            existing.composite_score = composite_score
            existing.agent_scores = dict(agent_scores)
            existing.weights = dict(weights)
            existing.agents_completed = agents_completed
            existing.processing_time_ms = processing_time_ms
            record = existing
        else:
            record = MultiAgentScore(
                resume_id=resume_id,
                job_id=job_id,
                composite_score=composite_score,
                agent_scores=dict(agent_scores),
                weights=dict(weights),
                agents_completed=agents_completed,
                processing_time_ms=processing_time_ms,
            )
            self.db.add(record)

        self.db.flush()
        logger.info(f"Stored composite score {composite_score} for {resume_id}/{job_id}")
        return record

    def get_composite_score(self, resume_id: str, job_id: str) -> Optional[MultiAgentScore]:
        stmt = select(MultiAgentScore).where(
            MultiAgentScore.resume_id == resume_id,
            MultiAgentScore.job_id == job_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()
