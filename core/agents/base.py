#!/usr/bin/env python3
"""
Scorer contract and registry.

A scorer is a pure function over a loaded resume and job. Scorers register
under their strategy type; the coordinator and fork manager look them up
by that name.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional, Type

logger = logging.getLogger(__name__)

_RESERVED_COLUMNS = {'id', 'fork_id', 'resume_id', 'job_id', 'score', 'processing_time_ms', 'details', 'created_at'}


class BaseScorer(ABC):
    """Base class for all scoring strategies."""

    strategy_type: str = ''
    # ORM model of the strategy's result table, if it has one
    result_model = None

    @abstractmethod
    def analyze(self, resume, job) -> Dict[str, Any]:
        """Score a resume against a job. Must return at least a numeric 'score' in [0, 100]."""

    def get_required_result_fields(self) -> List[str]:
        return ['score']

    def build_result_record(self, fork, result: Dict[str, Any]):
        """Map a validated result onto a row of the strategy's result table."""
        if self.result_model is None:
            return None

        columns = {column.name for column in self.result_model.__table__.columns}
        values = {k: v for k, v in result.items() if k in columns and k not in _RESERVED_COLUMNS}
        details = {k: v for k, v in result.items() if k not in columns}

        return self.result_model(
            fork_id=fork.fork_id,
            resume_id=fork.resume_id,
            job_id=fork.job_id,
            score=float(result['score']),
            processing_time_ms=fork.processing_time_ms,
            details=details,
            **values,
        )


class ScorerRegistry:
    def __init__(self):
        self._scorers: Dict[str, BaseScorer] = {}

    def register(self, scorer: BaseScorer) -> BaseScorer:
        if not scorer.strategy_type:
            raise ValueError(f"{type(scorer).__name__} has no strategy_type")
        if scorer.strategy_type in self._scorers:
            logger.warning(f"Replacing scorer for {scorer.strategy_type}")
        self._scorers[scorer.strategy_type] = scorer
        return scorer

    def get(self, strategy_type: str) -> Optional[BaseScorer]:
        return self._scorers.get(strategy_type)

    def strategies(self) -> List[str]:
        return list(self._scorers)

    def __contains__(self, strategy_type: str) -> bool:
        return strategy_type in self._scorers

    def __iter__(self) -> Iterator[BaseScorer]:
        return iter(list(self._scorers.values()))

    def __len__(self) -> int:
        return len(self._scorers)


default_registry = ScorerRegistry()


def register_scorer(cls: Type[BaseScorer]) -> Type[BaseScorer]:
    """Class decorator adding a scorer to the default registry."""
    default_registry.register(cls())
    return cls
