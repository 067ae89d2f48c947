#!/usr/bin/env python3
"""
Fire-and-forget analytics writer.

Writes go through a single background worker so scoring never waits on
them. A failed write is logged and dropped; nothing is raised to the caller.
The backlog is capped by max_pending_writes; writes beyond it are dropped
and counted in failed_writes.
"""

import logging
import math
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import sessionmaker

from core.config_loader import AnalyticsConfig
from database.uow import scoring_uow

logger = logging.getLogger(__name__)


def assess_score_quality(score: Any) -> float:
    """Rough plausibility of a strategy score; extreme scores are trusted less."""
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
        return 0.0
    if score < 20 or score > 80:
        return 0.7
    return 0.9


class AnalyticsRecorder:
    def __init__(
        self,
        session_factory: sessionmaker,
        config: Optional[AnalyticsConfig] = None,
    ):
        self.session_factory = session_factory
        self.config = config or AnalyticsConfig()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="analytics")
        self._lock = threading.Lock()
        self._pending = 0
        self.failed_writes = 0

    def record_weight_adjustment(
        self,
        job_id: str,
        weights: Dict[str, float],
        source: str,
        resume_id: Optional[str] = None,
        profile=None,
    ) -> Optional[Future]:
        if not self.config.record_weight_adjustments:
            return None

        def write(repo):
            repo.analytics.add_weight_adjustment(
                job_id=job_id,
                resume_id=resume_id,
                weights=weights,
                source=source,
                industry=getattr(profile, 'industry', None),
                role=getattr(profile, 'role', None),
                seniority=getattr(profile, 'seniority', None),
                confidence=getattr(profile, 'confidence', None),
            )

        return self._submit(write, f"weight adjustment for job {job_id}")

    def record_agent_execution(self, outcome, resume_id: str, job_id: str) -> Optional[Future]:
        if not self.config.record_agent_metrics:
            return None

        def write(repo):
            repo.analytics.add_execution_metric(
                fork_id=outcome.fork_id,
                agent_type=outcome.strategy_type,
                resume_id=resume_id,
                job_id=job_id,
                status=outcome.status,
                score=outcome.score,
                quality_score=assess_score_quality(outcome.score) if outcome.completed else None,
                processing_time_ms=outcome.duration_ms,
                error_message=outcome.error,
            )

        return self._submit(write, f"{outcome.strategy_type} metrics for {resume_id}/{job_id}")

    def record_composite_score(self, result) -> Optional[Future]:
        if not self.config.record_composite_scores:
            return None

        def write(repo):
            repo.analytics.upsert_composite_score(
                resume_id=result.resume_id,
                job_id=result.job_id,
                composite_score=result.composite_score,
                agent_scores=result.scores,
                weights=result.weights,
                agents_completed=result.agents_completed,
                processing_time_ms=result.processing_time_ms,
            )

        return self._submit(write, f"composite score for {result.resume_id}/{result.job_id}")

    @property
    def pending_writes(self) -> int:
        with self._lock:
            return self._pending

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until every write submitted so far has finished."""
        marker = self._executor.submit(lambda: None)
        try:
            marker.result(timeout=timeout)
            return True
        except Exception:
            return False

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _submit(self, write: Callable, description: str) -> Optional[Future]:
        if not self.config.enabled:
            return None

        def run():
            with scoring_uow(self.session_factory) as repo:
                write(repo)

        with self._lock:
            if self._pending >= self.config.max_pending_writes:
                self.failed_writes += 1
                backlog = self._pending
            else:
                backlog = None
                self._pending += 1
        if backlog is not None:
            logger.warning(f"Analytics dropped ({description}): {backlog} writes already pending")
            return None

        try:
            future = self._executor.submit(run)
        except RuntimeError as e:
            # Executor already shut down
            with self._lock:
                self._pending -= 1
            logger.warning(f"Analytics dropped ({description}): {e}")
            return None

        future.add_done_callback(lambda f: self._on_done(f, description))
        return future

    def _on_done(self, future: Future, description: str) -> None:
        error = future.exception()
        with self._lock:
            self._pending -= 1
            if error is not None:
                self.failed_writes += 1
        if error is not None:
            logger.error(f"Failed to record {description}: {error}")
