#!/usr/bin/env python3
"""
Agent execution harness.

Runs one scorer inside one fork:
acquire handle -> ping -> load subjects -> analyze -> validate -> report -> release.
"""

import logging
import math
import time
from threading import Lock
from typing import Any, Dict, Optional

from core.agents.base import BaseScorer
from core.exceptions import HarnessStateException, InvalidResultException, SubjectNotFoundException
from core.forks.models import ForkInfo
from database.repositories import SubjectRepository

logger = logging.getLogger(__name__)


class HarnessState:
    INITIALIZED = 'initialized'
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'


def validate_result(result: Any, required_fields) -> Dict[str, Any]:
    """
    Check a scorer result against the output contract.

    Raises:
        InvalidResultException: If the result is not a mapping, the score is
            missing, non-numeric, non-finite or outside [0, 100], or a
            required field is missing.
    """
    if not isinstance(result, dict):
        raise InvalidResultException(f"Result must be a dict, got {type(result).__name__}")

    missing = [name for name in required_fields if name not in result]
    if 'score' not in result and 'score' not in missing:
        missing.insert(0, 'score')
    if missing:
        raise InvalidResultException(f"Missing required fields: {', '.join(missing)}")

    score = result['score']
    if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
        raise InvalidResultException(f"Invalid score: {score!r}")
    if not 0 <= score <= 100:
        raise InvalidResultException(f"Score {score} out of range [0, 100]")

    return result


class AgentHarness:
    def __init__(self, fork: ForkInfo, scorer: BaseScorer, fork_manager):
        self.fork = fork
        self.scorer = scorer
        self.fork_manager = fork_manager
        self.state = HarnessState.INITIALIZED
        self.result: Optional[Dict[str, Any]] = None
        self.error: Optional[BaseException] = None
        self._started: Optional[float] = None
        self._finished: Optional[float] = None
        self._lock = Lock()

    @property
    def tag(self) -> str:
        return f"[{self.fork.strategy_type.upper()}]"

    @property
    def duration_ms(self) -> int:
        if self._started is None:
            return 0
        end = self._finished if self._finished is not None else time.monotonic()
        return int((end - self._started) * 1000)

    def run(self) -> Dict[str, Any]:
        """
        Execute the scorer once.

        Returns the validated result. Any failure is reported to the fork
        manager as a failed fork and re-raised.
        """
        with self._lock:
            if self.state != HarnessState.INITIALIZED:
                raise HarnessStateException(
                    f"Harness for fork {self.fork.fork_id} already {self.state}"
                )
            self.state = HarnessState.RUNNING
        self._started = time.monotonic()

        logger.info(f"{self.tag} Starting fork {self.fork.fork_id}")
        handle = None
        try:
            handle = self.fork_manager.open_handle(self.fork.fork_id)
            handle.ping()
            logger.info(f"{self.tag} Connection verified")

            with handle.session() as session:
                resume, job = self._load_subjects(SubjectRepository(session))
                logger.info(f"{self.tag} Data loaded ({self.fork.resume_id}/{self.fork.job_id})")

                result = self.scorer.analyze(resume, job)
            validate_result(result, self.scorer.get_required_result_fields())
            logger.info(f"{self.tag} Analysis complete: score={result['score']}")

            self.fork_manager.complete_fork(self.fork.fork_id, result)
            logger.info(f"{self.tag} Results stored for fork {self.fork.fork_id}")

            self.result = result
            self.state = HarnessState.COMPLETED
            return result
        except Exception as e:
            self.error = e
            self.state = HarnessState.FAILED
            logger.error(f"{self.tag} Fork {self.fork.fork_id} failed: {e}")
            self.fork_manager.fail_fork(self.fork.fork_id, e)
            raise
        finally:
            self._finished = time.monotonic()
            if handle is not None:
                handle.close()

    def get_status(self) -> Dict[str, Any]:
        return {
            'fork_id': self.fork.fork_id,
            'strategy_type': self.fork.strategy_type,
            'state': self.state,
            'duration_ms': self.duration_ms,
            'error': str(self.error) if self.error else None,
        }

    def _load_subjects(self, subjects: SubjectRepository):
        resume = subjects.get_resume(self.fork.resume_id)
        if resume is None:
            raise SubjectNotFoundException('resume', self.fork.resume_id)
        job = subjects.get_job(self.fork.job_id)
        if job is None:
            raise SubjectNotFoundException('job', self.fork.job_id)
        return resume, job
