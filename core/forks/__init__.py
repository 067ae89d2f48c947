from core.forks.models import ForkInfo, ForkStatus, IsolationMode, generate_fork_id
from core.forks.registry import ForkRegistry
from core.forks.isolation import ForkIsolator
from core.forks.handle import ForkHandle
from core.forks.manager import ForkManager, sanitize_url

__all__ = [
    'ForkInfo',
    'ForkStatus',
    'IsolationMode',
    'generate_fork_id',
    'ForkRegistry',
    'ForkIsolator',
    'ForkHandle',
    'ForkManager',
    'sanitize_url',
]
