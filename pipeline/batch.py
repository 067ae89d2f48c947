#!/usr/bin/env python3
"""
Batch scheduler - scores the cross product of resume and job ids at volume.

One batch is processed at a time (FIFO). Within a batch, pairs are scored
in fixed-size chunks; the chunk size bounds how many scoring requests, and
therefore forks, are in flight at once.
"""

import logging
import math
import threading
import time
from collections import OrderedDict, deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from threading import Event, Lock
from typing import Any, Deque, Dict, List, Optional, Sequence

from core.config_loader import BatchConfig
from core.exceptions import InvalidArgumentException, ServiceException

logger = logging.getLogger(__name__)


class BatchStatus:
    QUEUED = 'queued'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'


@dataclass(frozen=True)
class ScoringPair:
    resume_id: str
    job_id: str


@dataclass
class BatchJob:
    """A queued batch and everything it has produced so far."""
    batch_id: str
    pairs: List[ScoringPair]
    status: str = BatchStatus.QUEUED
    results: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    error: Optional[str] = None

    @property
    def processed(self) -> int:
        return len(self.results) + len(self.failed)

    @property
    def progress(self) -> float:
        if not self.pairs:
            return 100.0
        return round(self.processed / len(self.pairs) * 100, 1)

    def to_status(self) -> Dict[str, Any]:
        return {
            'batch_id': self.batch_id,
            'status': self.status,
            'total_pairs': len(self.pairs),
            'processed': self.processed,
            'successful': len(self.results),
            'failed': len(self.failed),
            'progress': self.progress,
            'created_at': self.created_at.isoformat(),
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'duration_ms': self.duration_ms,
            'error': self.error,
        }


def expand_pairs(resume_ids: Sequence[str], job_ids: Sequence[str]) -> List[ScoringPair]:
    """Cross product of the two id lists, resume-major."""
    return [ScoringPair(resume_id, job_id) for resume_id in resume_ids for job_id in job_ids]


class BatchScheduler:
    def __init__(
        self,
        coordinator,
        config: Optional[BatchConfig] = None,
        max_pairs_in_flight: Optional[int] = None,
    ):
        """
        Args:
            coordinator: Scores one resume/job pair (AgentCoordinator).
            config: Batch settings.
            max_pairs_in_flight: Upper bound on pairs scored at once inside a
                chunk. Each pair holds one fork per strategy, so this keeps a
                chunk within the active-fork cap. None means the whole chunk.
        """
        self.coordinator = coordinator
        self.config = config or BatchConfig()
        self.max_pairs_in_flight = max_pairs_in_flight

        self._queue: Deque[BatchJob] = deque()
        self._active: Dict[str, BatchJob] = {}
        self._completed: "OrderedDict[str, BatchJob]" = OrderedDict()
        self._lock = Lock()
        self._worker: Optional[threading.Thread] = None
        self._stop_event = Event()
        self._idle = Event()
        self._idle.set()

        self._stats = {
            'total_processed': 0,
            'total_failed': 0,
            'total_batches': 0,
            'average_time_per_batch_ms': 0.0,
        }

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def add_batch_job(self, batch_id: str, resume_ids: Sequence[str], job_ids: Sequence[str]) -> BatchJob:
        """
        Queue a batch scoring every resume against every job.

        Raises:
            InvalidArgumentException: If batch_id is empty or already queued,
                or either id list is empty or not a list.
        """
        if not batch_id or not isinstance(batch_id, str):
            raise InvalidArgumentException("batch_id must be a non-empty string")
        for name, ids in (('resume_ids', resume_ids), ('job_ids', job_ids)):
            if not isinstance(ids, (list, tuple)):
                raise InvalidArgumentException(f"{name} must be a list")
            if not ids:
                raise InvalidArgumentException(f"{name} must not be empty")

        job = BatchJob(batch_id=batch_id, pairs=expand_pairs(resume_ids, job_ids))

        with self._lock:
            if self._stop_event.is_set():
                raise ServiceException("Batch scheduler is shut down")
            if batch_id in self._active:
                raise InvalidArgumentException(f"Batch {batch_id} is already queued")
            self._queue.append(job)
            self._active[batch_id] = job
            self._idle.clear()
            if self._worker is None:
                self._worker = threading.Thread(
                    target=self._run_queue,
                    name="batch-scheduler",
                    daemon=True,
                )
                self._worker.start()
            queue_length = len(self._queue)

        logger.info(f"Batch {batch_id} queued: {len(job.pairs)} pairs (queue length {queue_length})")
        return job

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_batch_status(self, batch_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            job = self._find(batch_id)
            if job is None:
                return None
            status = job.to_status()
            if job.status == BatchStatus.QUEUED:
                status['queue_position'] = next(
                    i for i, queued in enumerate(self._queue) if queued is job
                )
            return status

    def get_batch_results(
        self,
        batch_id: str,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        One page of a batch's successes and failures.

        The same page window is applied to both lists; total_pages counts
        pages of successes.
        """
        if page_size is None:
            page_size = self.config.default_page_size
        if page < 1:
            raise InvalidArgumentException("page must be >= 1")
        if page_size < 1:
            raise InvalidArgumentException("page_size must be >= 1")

        with self._lock:
            job = self._find(batch_id)
            if job is None:
                return None
            results = list(job.results)
            failed = list(job.failed)
            status = job.status

        start = (page - 1) * page_size
        end = start + page_size
        return {
            'batch_id': batch_id,
            'status': status,
            'page': page,
            'page_size': page_size,
            'total_results': len(results),
            'total_failed': len(failed),
            'total_pages': math.ceil(len(results) / page_size),
            'results': results[start:end],
            'failed': failed[start:end],
        }

    def get_queue_status(self) -> Dict[str, Any]:
        with self._lock:
            current = self._queue[0] if self._queue and self._queue[0].status == BatchStatus.PROCESSING else None
            return {
                'queue_length': len(self._queue),
                'processing': current is not None,
                'current_batch': current.batch_id if current else None,
                'queued_batches': [job.batch_id for job in self._queue if job is not current],
                'queued_pairs': sum(len(job.pairs) for job in self._queue),
                'completed_batches': len(self._completed),
            }

    def get_completed_batches(self, limit: int = 10) -> List[Dict[str, Any]]:
        with self._lock:
            jobs = list(self._completed.values())
        return [job.to_status() for job in reversed(jobs)][:limit]

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            stats = dict(self._stats)
            queue_length = len(self._queue)
            completed = len(self._completed)

        attempted = stats['total_processed'] + stats['total_failed']
        stats['success_rate'] = round(stats['total_processed'] / attempted * 100, 2) if attempted else 0.0
        stats['average_time_per_batch_ms'] = round(stats['average_time_per_batch_ms'], 2)
        stats['queue_length'] = queue_length
        stats['completed_batches'] = completed
        return stats

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear_completed_batches(self, older_than_minutes: Optional[float] = None) -> int:
        if older_than_minutes is None:
            older_than_minutes = self.config.completed_retention_minutes
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=older_than_minutes)

        with self._lock:
            expired = [
                batch_id for batch_id, job in self._completed.items()
                if job.completed_at is not None and job.completed_at < cutoff
            ]
            for batch_id in expired:
                del self._completed[batch_id]

        if expired:
            logger.info(f"Cleared {len(expired)} completed batches")
        return len(expired)

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the queue is drained. Returns False on timeout."""
        return self._idle.wait(timeout)

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Stop after the batch in flight.

        Batches still waiting in the queue are not processed; they are marked
        failed and moved to the completed index.
        """
        now = datetime.now(timezone.utc)
        with self._lock:
            self._stop_event.set()
            worker = self._worker
            abandoned = [job for job in self._queue if job.status == BatchStatus.QUEUED]
            for job in abandoned:
                self._queue.remove(job)
                self._active.pop(job.batch_id, None)
                job.status = BatchStatus.FAILED
                job.error = "scheduler shut down"
                job.completed_at = now
                self._completed[job.batch_id] = job
            if not self._queue:
                self._idle.set()
        if abandoned:
            logger.warning(f"Batch scheduler stopping with {len(abandoned)} queued batches; marked failed")
        if worker is not None:
            worker.join(timeout)
        logger.info("Batch scheduler shut down")

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def _find(self, batch_id: str) -> Optional[BatchJob]:
        return self._active.get(batch_id) or self._completed.get(batch_id)

    def _run_queue(self) -> None:
        while True:
            with self._lock:
                if not self._queue or self._stop_event.is_set():
                    self._worker = None
                    self._idle.set()
                    return
                job = self._queue[0]
                job.status = BatchStatus.PROCESSING

            self._process_job(job)

            with self._lock:
                self._queue.popleft()
                self._active.pop(job.batch_id, None)
                self._completed[job.batch_id] = job
                self._completed.move_to_end(job.batch_id)
                self._update_stats(job)
                has_more = bool(self._queue)

            if has_more:
                self._stop_event.wait(self.config.next_batch_delay_seconds)

    def _process_job(self, job: BatchJob) -> None:
        job.started_at = datetime.now(timezone.utc)
        start = time.monotonic()
        chunk_size = max(1, self.config.chunk_size)
        total = len(job.pairs)
        logger.info(f"Processing batch {job.batch_id}: {total} pairs in chunks of {chunk_size}")

        try:
            for offset in range(0, total, chunk_size):
                chunk = job.pairs[offset:offset + chunk_size]
                self._process_chunk(job, chunk)
                logger.info(
                    f"Batch {job.batch_id}: {job.processed}/{total} pairs processed "
                    f"({len(job.results)} ok, {len(job.failed)} failed)"
                )

            if job.pairs and not job.results:
                job.status = BatchStatus.FAILED
                job.error = f"All {total} pairs failed"
            else:
                job.status = BatchStatus.COMPLETED
        except Exception as e:
            logger.exception(f"Batch {job.batch_id} failed")
            job.status = BatchStatus.FAILED
            job.error = str(e)
        finally:
            job.completed_at = datetime.now(timezone.utc)
            job.duration_ms = int((time.monotonic() - start) * 1000)

        logger.info(f"Batch {job.batch_id} {job.status} in {job.duration_ms}ms")

    def _process_chunk(self, job: BatchJob, chunk: List[ScoringPair]) -> None:
        workers = len(chunk)
        if self.max_pairs_in_flight:
            workers = max(1, min(workers, self.max_pairs_in_flight))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="batch-pair") as pool:
            futures = [
                (pair, pool.submit(self.coordinator.score_resume, pair.resume_id, pair.job_id))
                for pair in chunk
            ]
            for pair, future in futures:
                try:
                    result = future.result()
                except Exception as e:
                    logger.warning(f"Pair {pair.resume_id}/{pair.job_id} failed: {e}")
                    failure = {'resume_id': pair.resume_id, 'job_id': pair.job_id, 'error': str(e)}
                    with self._lock:
                        job.failed.append(failure)
                    continue

                to_dict = getattr(result, 'to_dict', None)
                payload = to_dict() if callable(to_dict) else dict(result)
                with self._lock:
                    job.results.append(payload)

    def _update_stats(self, job: BatchJob) -> None:
        self._stats['total_processed'] += len(job.results)
        self._stats['total_failed'] += len(job.failed)
        self._stats['total_batches'] += 1
        n = self._stats['total_batches']
        previous = self._stats['average_time_per_batch_ms']
        self._stats['average_time_per_batch_ms'] = previous + ((job.duration_ms or 0) - previous) / n
