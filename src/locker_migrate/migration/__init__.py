"""Migration pipeline: reconcile, filter, batch, write."""

from .batcher import batch_units
from .checkpoint import Checkpoint, CheckpointStore, Stage
from .engine import MigrationEngine
from .filters import filter_position
from .orchestrator import (
    MigrationOrchestrator,
    MigrationPlan,
    MigrationState,
    MigrationSummary,
    ScanResult,
)
from .reconciler import Reconciler
from .writer import BatchWriter

__all__ = [
    'batch_units',
    'Checkpoint',
    'CheckpointStore',
    'Stage',
    'MigrationEngine',
    'filter_position',
    'MigrationOrchestrator',
    'MigrationPlan',
    'MigrationState',
    'MigrationSummary',
    'ScanResult',
    'Reconciler',
    'BatchWriter',
]
