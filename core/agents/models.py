from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.forks.models import ForkStatus


@dataclass
class JobMetadata:
    """Optional job hints used for dynamic weighting."""
    title: Optional[str] = None
    description: Optional[str] = None

    @property
    def has_hints(self) -> bool:
        return bool(self.title and self.description)


@dataclass
class AgentOutcome:
    """How one strategy fared on one resume/job pair."""
    strategy_type: str
    status: str
    score: float = 0.0
    duration_ms: int = 0
    fork_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.status == ForkStatus.COMPLETED

    @classmethod
    def failed(cls, strategy_type: str, error: str, duration_ms: int = 0, fork_id: Optional[str] = None) -> "AgentOutcome":
        return cls(
            strategy_type=strategy_type,
            status=ForkStatus.FAILED,
            score=0.0,
            duration_ms=duration_ms,
            fork_id=fork_id,
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'status': self.status,
            'score': self.score,
            'duration_ms': self.duration_ms,
            'fork_id': self.fork_id,
        }
        if self.error:
            data['error'] = self.error
        return data


@dataclass
class CompositeResult:
    resume_id: str
    job_id: str
    composite_score: float
    scores: Dict[str, float]
    weights: Dict[str, float]
    breakdown: Dict[str, Dict[str, Any]]
    agent_statuses: Dict[str, Dict[str, Any]]
    processing_time_ms: int
    agents_completed: int
    weight_source: str = 'static'
    weight_confidence: Optional[float] = None
    processing_method: str = 'parallel_agents'
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'resume_id': self.resume_id,
            'job_id': self.job_id,
            'composite_score': self.composite_score,
            'scores': dict(self.scores),
            'weights': dict(self.weights),
            'breakdown': self.breakdown,
            'agent_statuses': self.agent_statuses,
            'processing_time_ms': self.processing_time_ms,
            'agents_completed': self.agents_completed,
            'weight_source': self.weight_source,
            'weight_confidence': self.weight_confidence,
            'processing_method': self.processing_method,
            'timestamp': self.timestamp.isoformat(),
        }
