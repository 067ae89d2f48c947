#!/usr/bin/env python3
"""
Fork lifecycle manager.

Creates, tracks and tears down the isolated execution contexts (forks) each
scoring strategy runs in. The in-memory registry is authoritative for
status and the active-fork cap; the agent_forks table is written on a
best-effort basis for auditing, stats and retention cleanup.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import sessionmaker

from core.config_loader import ForkConfig
from core.exceptions import ForkConnectionException, ForkNotFoundException
from core.forks.handle import ForkHandle
from core.forks.isolation import ForkIsolator
from core.forks.models import ForkInfo, ForkStatus, IsolationMode, generate_fork_id
from core.forks.registry import ForkRegistry
from database.uow import scoring_uow

logger = logging.getLogger(__name__)


def sanitize_url(url: Any) -> str:
    """Render a database URL with its password masked."""
    try:
        return make_url(str(url)).render_as_string(hide_password=True)
    except ArgumentError:
        return "<invalid url>"


class ForkManager:
    def __init__(
        self,
        engine: Engine,
        session_factory: sessionmaker,
        config: Optional[ForkConfig] = None,
        scorer_registry=None,
        isolator: Optional[ForkIsolator] = None,
        registry: Optional[ForkRegistry] = None,
    ):
        self.engine = engine
        self.session_factory = session_factory
        self.config = config or ForkConfig()
        self.scorer_registry = scorer_registry
        self.isolator = isolator or ForkIsolator(
            engine,
            modes=self.config.isolation_modes,
            template_database=self.config.template_database,
        )
        self.registry = registry or ForkRegistry(self.config.max_concurrent_forks)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_fork(self, strategy_type: str, resume_id: str, job_id: str) -> ForkInfo:
        """
        Create and isolate a fork for one strategy on one resume/job pair.

        Raises:
            CapacityExceededException: If the active-fork cap is reached.
            ForkIsolationException: If every isolation mode failed.
        """
        self.registry.reserve_slot()

        fork = ForkInfo(
            fork_id=generate_fork_id(strategy_type, resume_id, job_id),
            strategy_type=strategy_type,
            resume_id=resume_id,
            job_id=job_id,
        )
        self.registry.register(fork)
        logger.info(f"Creating fork {fork.fork_id} for {strategy_type} ({resume_id}/{job_id})")

        try:
            self._persist_pending(fork)
            data_location, isolation_mode = self.isolator.provision(fork.fork_id)
        except Exception as e:
            logger.error(f"Failed to create fork {fork.fork_id}: {e}")
            self.fail_fork(fork.fork_id, e)
            raise

        started_at = datetime.now(timezone.utc)
        self.registry.mark_active(
            fork.fork_id,
            data_location=data_location,
            isolation_mode=isolation_mode,
            started_at=started_at,
            started_monotonic=time.monotonic(),
        )
        self._persist_active(fork)

        logger.info(f"Fork {fork.fork_id} active ({isolation_mode})")
        return fork

    def open_handle(self, fork_id: str) -> ForkHandle:
        """
        Open the single connection a harness uses for this fork.

        Raises:
            ForkNotFoundException: If the fork is unknown.
            ForkConnectionException: If the fork is not active or the
                connection cannot be opened.
        """
        fork = self.registry.get(fork_id)
        if fork is None:
            raise ForkNotFoundException(f"Fork not found: {fork_id}")
        if fork.status != ForkStatus.ACTIVE:
            raise ForkConnectionException(f"Fork {fork_id} is {fork.status}, not active")

        engine = None
        try:
            if fork.isolation_mode == IsolationMode.LOGICAL:
                connection = self.engine.connect()
            else:
                engine = create_engine(fork.data_location, pool_size=1, max_overflow=0)
                connection = engine.connect()
        except Exception as e:
            if engine is not None:
                engine.dispose()
            raise ForkConnectionException(f"Cannot connect to fork {fork_id}: {e}") from e

        return ForkHandle(fork_id, connection, engine)

    def complete_fork(self, fork_id: str, result: Dict[str, Any]) -> bool:
        """
        Mark a fork completed and store its result.

        Returns True on the first transition only. Unknown or already
        terminal forks are logged and return False.
        """
        fork = self.registry.mark_terminal(fork_id, ForkStatus.COMPLETED, result=result)
        if fork is None:
            self._log_rejected_transition(fork_id, ForkStatus.COMPLETED)
            return False

        try:
            with scoring_uow(self.session_factory) as repo:
                repo.forks.mark_terminal(
                    fork_id,
                    ForkStatus.COMPLETED,
                    completed_at=fork.completed_at,
                    processing_time_ms=fork.processing_time_ms,
                )
                record = self._build_result_record(fork, result)
                if record is not None:
                    repo.results.save_result(record)
        except Exception:
            logger.exception(f"Failed to persist completion of fork {fork_id}")

        logger.info(f"Fork {fork_id} completed in {fork.processing_time_ms}ms")
        return True

    def fail_fork(self, fork_id: str, error: Union[BaseException, str]) -> bool:
        """Mark a fork failed. Same idempotence rules as complete_fork."""
        message = str(error) or type(error).__name__
        fork = self.registry.mark_terminal(fork_id, ForkStatus.FAILED, error_message=message)
        if fork is None:
            self._log_rejected_transition(fork_id, ForkStatus.FAILED)
            return False

        try:
            with scoring_uow(self.session_factory) as repo:
                repo.forks.mark_terminal(
                    fork_id,
                    ForkStatus.FAILED,
                    completed_at=fork.completed_at,
                    processing_time_ms=fork.processing_time_ms,
                    error_message=message,
                )
        except Exception:
            logger.exception(f"Failed to persist failure of fork {fork_id}")

        logger.warning(f"Fork {fork_id} failed: {message}")
        return True

    def get_fork(self, fork_id: str) -> Optional[ForkInfo]:
        return self.registry.get(fork_id)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def cleanup_expired(self, retention_hours: Optional[float] = None) -> Dict[str, int]:
        """
        Purge terminal forks older than the retention window.

        Returns counts removed from the database and from memory, plus the
        number of cloned databases dropped.
        """
        if retention_hours is None:
            retention_hours = self.config.retention_hours
        cutoff = datetime.now(timezone.utc) - timedelta(hours=retention_hours)

        expired = self.registry.purge_terminal_before(cutoff)
        dropped = 0
        for fork in expired:
            if self.isolator.release(fork.fork_id, fork.isolation_mode):
                dropped += 1

        database_count = 0
        try:
            with scoring_uow(self.session_factory) as repo:
                database_count = repo.forks.delete_terminal_before(cutoff)
        except Exception:
            logger.exception("Failed to purge expired forks from the database")

        logger.info(
            f"Cleaned up {database_count} database forks and {len(expired)} memory forks "
            f"({dropped} databases dropped)"
        )
        return {
            'database_count': database_count,
            'memory_count': len(expired),
            'dropped_databases': dropped,
        }

    def health_check(self) -> Dict[str, Any]:
        """Fork counts plus primary database reachability. Never raises."""
        counts = self.registry.counts_by_status()
        health = {
            'status': 'healthy',
            'active_forks': counts[ForkStatus.ACTIVE],
            'pending_forks': counts[ForkStatus.PENDING],
            'completed_forks': counts[ForkStatus.COMPLETED],
            'failed_forks': counts[ForkStatus.FAILED],
            'total_forks': counts['total'],
            'active_slots': self.registry.active_slots,
            'max_concurrent_forks': self.registry.max_active,
            'database_url': sanitize_url(self.engine.url),
        }

        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"Fork manager health check failed: {e}")
            health['status'] = 'unhealthy'
            health['error'] = str(e)

        return health

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_fork_stats(self, resume_id: str, job_id: str) -> List[Dict[str, Any]]:
        try:
            with scoring_uow(self.session_factory) as repo:
                return [self._record_to_dict(r) for r in repo.forks.get_forks_for_pair(resume_id, job_id)]
        except Exception:
            logger.exception(f"Failed to load fork stats for {resume_id}/{job_id}")
            return []

    def get_active_forks(self) -> List[Dict[str, Any]]:
        try:
            with scoring_uow(self.session_factory) as repo:
                return [self._record_to_dict(r) for r in repo.forks.get_active_forks()]
        except Exception:
            logger.exception("Failed to load active forks")
            return []

    def get_agent_performance(self) -> List[Dict[str, Any]]:
        try:
            with scoring_uow(self.session_factory) as repo:
                return repo.forks.get_agent_performance()
        except Exception:
            logger.exception("Failed to load agent performance")
            return []

    def shutdown(self) -> None:
        """
        Drop terminal forks from memory and release the primary engine.

        Forks still pending or active stay registered: harnesses that outlived
        their coordinator timeout can still complete or fail them, and their
        results are stored.
        """
        in_flight = (
            self.registry.list_by_status(ForkStatus.PENDING)
            + self.registry.list_by_status(ForkStatus.ACTIVE)
        )
        if in_flight:
            logger.warning(
                f"Shutting down with {len(in_flight)} in-flight forks: "
                f"{', '.join(fork.fork_id for fork in in_flight)}"
            )
        self.registry.purge_terminal_before(datetime.now(timezone.utc))
        self.engine.dispose()
        logger.info("Fork manager shut down")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _log_rejected_transition(self, fork_id: str, status: str) -> None:
        existing = self.registry.get(fork_id)
        if existing is None:
            logger.warning(f"Fork not found: {fork_id}")
        else:
            logger.info(f"Fork {fork_id} already {existing.status}; ignoring {status}")

    def _build_result_record(self, fork: ForkInfo, result: Dict[str, Any]):
        if self.scorer_registry is None:
            return None
        scorer = self.scorer_registry.get(fork.strategy_type)
        if scorer is None:
            logger.warning(f"No scorer registered for {fork.strategy_type}; result not stored")
            return None
        return scorer.build_result_record(fork, result)

    def _persist_pending(self, fork: ForkInfo) -> None:
        try:
            with scoring_uow(self.session_factory) as repo:
                repo.forks.create_fork(
                    fork_id=fork.fork_id,
                    agent_type=fork.strategy_type,
                    resume_id=fork.resume_id,
                    job_id=fork.job_id,
                    parent_db_url=sanitize_url(self.engine.url),
                    created_at=fork.created_at,
                )
        except Exception:
            logger.exception(f"Failed to record fork {fork.fork_id}")

    def _persist_active(self, fork: ForkInfo) -> None:
        try:
            with scoring_uow(self.session_factory) as repo:
                repo.forks.mark_active(
                    fork.fork_id,
                    started_at=fork.started_at,
                    fork_db_url=sanitize_url(fork.data_location),
                    isolation_mode=fork.isolation_mode,
                )
        except Exception:
            logger.exception(f"Failed to record activation of fork {fork.fork_id}")

    @staticmethod
    def _record_to_dict(record) -> Dict[str, Any]:
        return {
            'fork_id': record.fork_id,
            'agent_type': record.agent_type,
            'resume_id': record.resume_id,
            'job_id': record.job_id,
            'status': record.status,
            'isolation_mode': record.isolation_mode,
            'fork_db_url': record.fork_db_url,
            'created_at': record.created_at.isoformat() if record.created_at else None,
            'started_at': record.started_at.isoformat() if record.started_at else None,
            'completed_at': record.completed_at.isoformat() if record.completed_at else None,
            'processing_time_ms': record.processing_time_ms,
            'error_message': record.error_message,
        }
