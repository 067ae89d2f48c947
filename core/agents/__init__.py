from core.agents.base import BaseScorer, ScorerRegistry, default_registry, register_scorer
from core.agents.models import AgentOutcome, CompositeResult, JobMetadata
from core.agents.harness import AgentHarness, HarnessState, validate_result
from core.agents.coordinator import AgentCoordinator, calculate_composite_score
# Importing the module registers the baseline scorers
from core.agents import scorers

__all__ = [
    'BaseScorer',
    'ScorerRegistry',
    'default_registry',
    'register_scorer',
    'AgentOutcome',
    'CompositeResult',
    'JobMetadata',
    'AgentHarness',
    'HarnessState',
    'validate_result',
    'AgentCoordinator',
    'calculate_composite_score',
    'scorers',
]
