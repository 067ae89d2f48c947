"""Batch scheduling and maintenance for the scoring service."""

from .batch import BatchJob, BatchScheduler, BatchStatus, ScoringPair, expand_pairs
from .maintenance import MaintenanceResult, MaintenanceWorker, run_maintenance

__all__ = [
    'BatchJob',
    'BatchScheduler',
    'BatchStatus',
    'ScoringPair',
    'expand_pairs',
    'MaintenanceResult',
    'MaintenanceWorker',
    'run_maintenance',
]
