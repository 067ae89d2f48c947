import hashlib
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class ForkStatus:
    PENDING = 'pending'
    ACTIVE = 'active'
    COMPLETED = 'completed'
    FAILED = 'failed'

    ALL = (PENDING, ACTIVE, COMPLETED, FAILED)
    TERMINAL = (COMPLETED, FAILED)


class IsolationMode:
    ZERO_COPY = 'zero_copy'
    TEMPLATE = 'template'
    LOGICAL = 'logical'

    ALL = (ZERO_COPY, TEMPLATE, LOGICAL)


def generate_fork_id(strategy_type: str, resume_id: str, job_id: str) -> str:
    """fork_<strategy>_<8 hex chars>, unique per strategy, pair and creation instant."""
    seed = f"{strategy_type}-{resume_id}-{job_id}-{time.time_ns()}"
    digest = hashlib.md5(seed.encode('utf-8')).hexdigest()[:8]
    return f"fork_{strategy_type}_{digest}"


@dataclass
class ForkInfo:
    """In-memory state of one fork."""
    fork_id: str
    strategy_type: str
    resume_id: str
    job_id: str
    status: str = ForkStatus.PENDING
    data_location: Optional[str] = None
    isolation_mode: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    processing_time_ms: Optional[int] = None
    result: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    started_monotonic: Optional[float] = field(default=None, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in ForkStatus.TERMINAL

    def elapsed_ms(self) -> int:
        if self.started_monotonic is None:
            return 0
        return int((time.monotonic() - self.started_monotonic) * 1000)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fork_id': self.fork_id,
            'strategy_type': self.strategy_type,
            'resume_id': self.resume_id,
            'job_id': self.job_id,
            'status': self.status,
            'isolation_mode': self.isolation_mode,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'processing_time_ms': self.processing_time_ms,
            'error_message': self.error_message,
        }
