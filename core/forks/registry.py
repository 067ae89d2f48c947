import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List, Optional

from core.exceptions import CapacityExceededException
from core.forks.models import ForkInfo, ForkStatus

logger = logging.getLogger(__name__)


class ForkRegistry:
    """
    Process-wide index of forks plus the active-fork counter.

    A slot is reserved before a fork is provisioned and released exactly once,
    when the fork reaches a terminal state (or provisioning is abandoned).
    Every mutation happens under one lock, so the cap check and the increment
    are a single atomic step.
    """

    def __init__(self, max_active: int = 10):
        self.max_active = max_active
        self._forks: Dict[str, ForkInfo] = {}
        self._active_slots = 0
        self._lock = Lock()

    @property
    def active_slots(self) -> int:
        with self._lock:
            return self._active_slots

    def reserve_slot(self) -> None:
        """
        Reserve one active-fork slot.

        Raises:
            CapacityExceededException: If the cap is reached. The counter is
                left unchanged.
        """
        with self._lock:
            if self._active_slots >= self.max_active:
                raise CapacityExceededException(self._active_slots, self.max_active)
            self._active_slots += 1

    def _release_locked(self) -> None:
        if self._active_slots > 0:
            self._active_slots -= 1
        else:
            logger.warning("Active fork counter released below zero; ignoring")

    def register(self, fork: ForkInfo) -> None:
        with self._lock:
            self._forks[fork.fork_id] = fork

    def get(self, fork_id: str) -> Optional[ForkInfo]:
        with self._lock:
            return self._forks.get(fork_id)

    def mark_active(
        self,
        fork_id: str,
        data_location: str,
        isolation_mode: str,
        started_at: datetime,
        started_monotonic: float,
    ) -> Optional[ForkInfo]:
        with self._lock:
            fork = self._forks.get(fork_id)
            if fork is None or fork.status != ForkStatus.PENDING:
                return None
            fork.status = ForkStatus.ACTIVE
            fork.data_location = data_location
            fork.isolation_mode = isolation_mode
            fork.started_at = started_at
            fork.started_monotonic = started_monotonic
            return fork

    def mark_terminal(
        self,
        fork_id: str,
        status: str,
        result: Optional[dict] = None,
        error_message: Optional[str] = None,
    ) -> Optional[ForkInfo]:
        """
        Move a fork to completed/failed and release its slot.

        Returns the fork on the first transition, None when the fork is
        unknown or already terminal.
        """
        with self._lock:
            fork = self._forks.get(fork_id)
            if fork is None or fork.is_terminal:
                return None
            fork.status = status
            fork.completed_at = datetime.now(timezone.utc)
            fork.processing_time_ms = fork.elapsed_ms()
            fork.result = result
            fork.error_message = error_message
            self._release_locked()
            return fork

    def counts_by_status(self) -> Dict[str, int]:
        with self._lock:
            counts = {status: 0 for status in ForkStatus.ALL}
            for fork in self._forks.values():
                counts[fork.status] = counts.get(fork.status, 0) + 1
            counts['total'] = len(self._forks)
            return counts

    def list_by_status(self, status: str) -> List[ForkInfo]:
        with self._lock:
            return [fork for fork in self._forks.values() if fork.status == status]

    def purge_terminal_before(self, cutoff: datetime) -> List[ForkInfo]:
        """Remove and return terminal forks completed before cutoff."""
        with self._lock:
            expired = [
                fork for fork in self._forks.values()
                if fork.is_terminal and fork.completed_at is not None and fork.completed_at < cutoff
            ]
            for fork in expired:
                del self._forks[fork.fork_id]
            return expired
