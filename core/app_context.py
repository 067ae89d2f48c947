from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from core.agents import AgentCoordinator, ScorerRegistry, default_registry
from core.analytics import AnalyticsRecorder
from core.config_loader import AppConfig
from core.forks import ForkManager
from core.weight_optimizer import WeightOptimizer
from database.database import build_engine, build_session_factory
from pipeline.batch import BatchScheduler


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    Single source of truth for service instantiation. DB access inside the
    services goes through scoring_uow() with the session factory held here.
    """
    config: AppConfig
    engine: Engine
    session_factory: sessionmaker
    fork_manager: ForkManager
    coordinator: AgentCoordinator
    batch_scheduler: BatchScheduler
    analytics: Optional[AnalyticsRecorder] = None

    @classmethod
    def build(
        cls,
        config: AppConfig,
        engine: Optional[Engine] = None,
        scorer_registry: Optional[ScorerRegistry] = None,
    ) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration
            engine: Engine to use instead of one built from config.database
            scorer_registry: Scorers to run; defaults to the baseline scorers

        Returns:
            Fully wired AppContext instance
        """
        if engine is None:
            engine = build_engine(config.database.url, pool_size=config.database.pool_size)
        session_factory = build_session_factory(engine)
        scorer_registry = scorer_registry or default_registry

        fork_manager = ForkManager(
            engine,
            session_factory,
            config=config.forks,
            scorer_registry=scorer_registry,
        )

        analytics = cls._build_analytics(config, session_factory)

        coordinator = AgentCoordinator(
            fork_manager,
            config=config.coordinator,
            scorer_registry=scorer_registry,
            weight_optimizer=WeightOptimizer(),
            analytics=analytics,
        )

        # Each pair holds one fork per strategy while it is scored
        pairs_in_flight = max(1, config.forks.max_concurrent_forks // max(1, len(config.coordinator.strategies)))
        batch_scheduler = BatchScheduler(
            coordinator,
            config=config.batch,
            max_pairs_in_flight=pairs_in_flight,
        )

        return cls(
            config=config,
            engine=engine,
            session_factory=session_factory,
            fork_manager=fork_manager,
            coordinator=coordinator,
            batch_scheduler=batch_scheduler,
            analytics=analytics,
        )

    @staticmethod
    def _build_analytics(config: AppConfig, session_factory: sessionmaker) -> Optional[AnalyticsRecorder]:
        """Analytics recorder, or None when analytics are disabled."""
        if not config.analytics.enabled:
            return None
        return AnalyticsRecorder(session_factory, config.analytics)

    def shutdown(self, timeout: Optional[float] = None) -> None:
        self.batch_scheduler.shutdown(timeout)
        if self.analytics is not None:
            self.analytics.shutdown(wait=True)
        self.fork_manager.shutdown()
