#!/usr/bin/env python3
"""
Agent coordinator.

Fans one resume/job pair out to every configured scoring strategy, each in
its own fork, bounds the wait by a per-strategy timeout, tolerates partial
failure and combines the scores into one weighted composite.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, Dict, List, Optional, Tuple, Union

from core.agents.base import ScorerRegistry, default_registry
from core.agents.harness import AgentHarness
from core.agents.models import AgentOutcome, CompositeResult, JobMetadata
from core.config_loader import CoordinatorConfig
from core.exceptions import NoAgentsAvailableException, StrategyTimeoutException
from core.forks.models import ForkStatus
from core.weight_optimizer import DEFAULT_WEIGHTS, DIMENSIONS, WeightOptimizer, WeightProfile

logger = logging.getLogger(__name__)


def calculate_composite_score(scores: Dict[str, float], weights: Dict[str, float]) -> float:
    """
    Weighted average over dimensions with a positive weight.

    A failed dimension keeps its weight in the denominator with a score of 0,
    so failures pull the composite down.
    """
    total = 0.0
    weight_sum = 0.0
    for dimension, weight in weights.items():
        if weight <= 0:
            continue
        total += float(scores.get(dimension, 0.0)) * weight
        weight_sum += weight

    if weight_sum <= 0:
        return 0.0
    return round(max(0.0, min(100.0, total / weight_sum)), 2)


class AgentCoordinator:
    def __init__(
        self,
        fork_manager,
        config: Optional[CoordinatorConfig] = None,
        scorer_registry: Optional[ScorerRegistry] = None,
        weight_optimizer: Optional[WeightOptimizer] = None,
        analytics=None,
    ):
        self.fork_manager = fork_manager
        self.config = config or CoordinatorConfig()
        self.scorer_registry = scorer_registry or default_registry
        self.weight_optimizer = weight_optimizer or WeightOptimizer()
        self.analytics = analytics

    def score_resume(
        self,
        resume_id: str,
        job_id: str,
        job_metadata: Optional[Union[JobMetadata, Dict[str, Any]]] = None,
    ) -> CompositeResult:
        """
        Score one resume against one job with every configured strategy.

        Strategy failures and timeouts degrade the composite instead of
        raising.

        Raises:
            NoAgentsAvailableException: If no strategy fork could be created.
        """
        start = time.monotonic()
        logger.info("=" * 60)
        logger.info(f"Scoring resume {resume_id} against job {job_id}")

        harnesses, outcomes = self._create_harnesses(resume_id, job_id)
        if not harnesses:
            raise NoAgentsAvailableException({k: v.error for k, v in outcomes.items()})

        outcomes.update(self._run_harnesses(harnesses))
        for dimension in DIMENSIONS:
            if dimension not in outcomes:
                outcomes[dimension] = AgentOutcome.failed(dimension, "Strategy not configured")

        metadata = self._coerce_metadata(job_metadata)
        weights, source, profile = self._resolve_weights(metadata)

        scores = {
            dimension: outcomes[dimension].score if outcomes[dimension].completed else 0.0
            for dimension in DIMENSIONS
        }
        composite = calculate_composite_score(scores, weights)

        breakdown = {}
        for dimension in DIMENSIONS:
            outcome = outcomes[dimension]
            weight = weights.get(dimension, 0.0)
            breakdown[dimension] = {
                'score': scores[dimension],
                'weight': weight,
                'weighted_score': round(scores[dimension] * weight, 2),
                'status': outcome.status,
                'details': outcome.details,
            }

        completed = sum(1 for outcome in outcomes.values() if outcome.completed)
        elapsed_ms = int((time.monotonic() - start) * 1000)

        result = CompositeResult(
            resume_id=resume_id,
            job_id=job_id,
            composite_score=composite,
            scores=scores,
            weights=weights,
            breakdown=breakdown,
            agent_statuses={d: outcomes[d].to_dict() for d in DIMENSIONS},
            processing_time_ms=elapsed_ms,
            agents_completed=completed,
            weight_source=source,
            weight_confidence=profile.confidence if profile else None,
        )

        logger.info(
            f"Composite score {composite} for {resume_id}/{job_id} "
            f"({completed}/{len(DIMENSIONS)} agents, {elapsed_ms}ms, {source} weights)"
        )
        self._record_analytics(result, outcomes, profile)
        return result

    def get_weights(
        self,
        job_id: str,
        job_metadata: Optional[Union[JobMetadata, Dict[str, Any]]] = None,
    ) -> Dict[str, float]:
        weights, _, _ = self._resolve_weights(self._coerce_metadata(job_metadata))
        return weights

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _create_harnesses(self, resume_id: str, job_id: str) -> Tuple[List[AgentHarness], Dict[str, AgentOutcome]]:
        harnesses = []
        failures: Dict[str, AgentOutcome] = {}

        for strategy in self.config.strategies:
            scorer = self.scorer_registry.get(strategy)
            if scorer is None:
                logger.error(f"No scorer registered for strategy {strategy}; skipping")
                failures[strategy] = AgentOutcome.failed(strategy, "No scorer registered")
                continue
            try:
                fork = self.fork_manager.create_fork(strategy, resume_id, job_id)
            except Exception as e:
                logger.error(f"Failed to create {strategy} fork: {e}")
                failures[strategy] = AgentOutcome.failed(strategy, str(e))
                continue
            harnesses.append(AgentHarness(fork, scorer, self.fork_manager))

        logger.info(f"Created {len(harnesses)}/{len(self.config.strategies)} agent forks")
        return harnesses, failures

    def _run_harnesses(self, harnesses: List[AgentHarness]) -> Dict[str, AgentOutcome]:
        timeout = self.config.timeout_seconds
        outcomes: Dict[str, AgentOutcome] = {}

        executor = ThreadPoolExecutor(max_workers=len(harnesses), thread_name_prefix="agent")
        try:
            futures = [(harness, executor.submit(harness.run)) for harness in harnesses]
            deadline = time.monotonic() + timeout

            for harness, future in futures:
                strategy = harness.fork.strategy_type
                fork_id = harness.fork.fork_id
                try:
                    result = future.result(timeout=max(0.0, deadline - time.monotonic()))
                    outcomes[strategy] = AgentOutcome(
                        strategy_type=strategy,
                        status=ForkStatus.COMPLETED,
                        score=float(result['score']),
                        duration_ms=harness.duration_ms,
                        fork_id=fork_id,
                        details=result,
                    )
                except FuturesTimeoutError:
                    error = StrategyTimeoutException(strategy, timeout)
                    logger.warning(f"{error}; fork {fork_id} keeps running in the background")
                    outcomes[strategy] = AgentOutcome.failed(
                        strategy, str(error), duration_ms=int(timeout * 1000), fork_id=fork_id
                    )
                except Exception as e:
                    outcomes[strategy] = AgentOutcome.failed(
                        strategy, str(e), duration_ms=harness.duration_ms, fork_id=fork_id
                    )
        finally:
            # Timed-out harnesses finish on their own and still release their handles
            executor.shutdown(wait=False)

        return outcomes

    def _resolve_weights(self, metadata: Optional[JobMetadata]) -> Tuple[Dict[str, float], str, Optional[WeightProfile]]:
        if self.config.use_static_weights or metadata is None or not metadata.has_hints:
            return dict(DEFAULT_WEIGHTS), 'static', None

        try:
            profile = self.weight_optimizer.describe(metadata.title, metadata.description)
            logger.info(
                f"Dynamic weights: industry={profile.industry}, role={profile.role}, "
                f"seniority={profile.seniority}, confidence={profile.confidence}"
            )
            return profile.weights, 'dynamic', profile
        except Exception as e:
            logger.warning(f"Dynamic weighting failed, using defaults: {e}")
            return dict(DEFAULT_WEIGHTS), 'static', None

    @staticmethod
    def _coerce_metadata(job_metadata) -> Optional[JobMetadata]:
        if job_metadata is None or isinstance(job_metadata, JobMetadata):
            return job_metadata
        return JobMetadata(
            title=job_metadata.get('title'),
            description=job_metadata.get('description'),
        )

    def _record_analytics(
        self,
        result: CompositeResult,
        outcomes: Dict[str, AgentOutcome],
        profile: Optional[WeightProfile],
    ) -> None:
        if self.analytics is None:
            return
        try:
            self.analytics.record_weight_adjustment(
                job_id=result.job_id,
                resume_id=result.resume_id,
                weights=result.weights,
                source=result.weight_source,
                profile=profile,
            )
            for outcome in outcomes.values():
                if outcome.fork_id is not None:
                    self.analytics.record_agent_execution(outcome, result.resume_id, result.job_id)
            self.analytics.record_composite_score(result)
        except Exception:
            logger.exception(f"Failed to queue analytics for {result.resume_id}/{result.job_id}")
