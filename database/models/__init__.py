from .base import Base, JSONType
from .fork import AgentFork
from .subject import Resume, Job
from .agent_result import (
    AgentResultMixin,
    SkillAgentResult,
    ExperienceAgentResult,
    EducationAgentResult,
    CertificationAgentResult,
    SemanticAgentResult,
)
from .analytics import WeightAdjustment, AgentExecutionMetric, MultiAgentScore

__all__ = [
    'Base',
    'JSONType',
    'AgentFork',
    'Resume',
    'Job',
    'AgentResultMixin',
    'SkillAgentResult',
    'ExperienceAgentResult',
    'EducationAgentResult',
    'CertificationAgentResult',
    'SemanticAgentResult',
    'WeightAdjustment',
    'AgentExecutionMetric',
    'MultiAgentScore',
]
