#!/usr/bin/env python3
"""
Periodic maintenance: expired fork cleanup and completed batch eviction.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from threading import Event
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class MaintenanceResult:
    """Result of one maintenance pass."""
    success: bool = True
    database_forks_removed: int = 0
    memory_forks_removed: int = 0
    databases_dropped: int = 0
    batches_cleared: int = 0
    execution_time: float = 0.0
    errors: List[str] = field(default_factory=list)


def run_maintenance(ctx, retention_hours: Optional[float] = None) -> MaintenanceResult:
    """Run one maintenance pass over the context's fork manager and batch scheduler."""
    result = MaintenanceResult()
    start = time.time()

    logger.info("=" * 60)
    logger.info("MAINTENANCE: fork cleanup and batch eviction")
    logger.info("=" * 60)

    try:
        counts = ctx.fork_manager.cleanup_expired(retention_hours)
        result.database_forks_removed = counts['database_count']
        result.memory_forks_removed = counts['memory_count']
        result.databases_dropped = counts.get('dropped_databases', 0)
    except Exception as e:
        logger.exception("Fork cleanup failed")
        result.success = False
        result.errors.append(f"fork cleanup: {e}")

    try:
        result.batches_cleared = ctx.batch_scheduler.clear_completed_batches()
    except Exception as e:
        logger.exception("Batch eviction failed")
        result.success = False
        result.errors.append(f"batch eviction: {e}")

    result.execution_time = time.time() - start
    logger.info(
        f"Maintenance finished in {result.execution_time:.2f}s: "
        f"{result.memory_forks_removed} memory forks, {result.database_forks_removed} database forks, "
        f"{result.batches_cleared} batches"
    )
    return result


class MaintenanceWorker:
    """Runs run_maintenance on a fixed interval in a daemon thread."""

    def __init__(self, ctx, interval_seconds: float):
        self.ctx = ctx
        self.interval_seconds = interval_seconds
        self.last_result: Optional[MaintenanceResult] = None
        self._stop_event = Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="maintenance", daemon=True)
        self._thread.start()
        logger.info(f"Maintenance worker started (every {self.interval_seconds}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            self.last_result = run_maintenance(self.ctx)
