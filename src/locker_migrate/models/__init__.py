"""Data models for lock positions and migration records."""

from .position import (
    ZERO_ADDRESS,
    CustodiedOwner,
    DirectOwner,
    LockRecord,
    Owner,
    OwnershipRecord,
    ReconciledPosition,
    Skip,
    SkipReason,
)
from .migration import Confirmation, MigrationBatch, MigrationUnit

__all__ = [
    'ZERO_ADDRESS',
    'CustodiedOwner',
    'DirectOwner',
    'LockRecord',
    'Owner',
    'OwnershipRecord',
    'ReconciledPosition',
    'Skip',
    'SkipReason',
    'Confirmation',
    'MigrationBatch',
    'MigrationUnit',
]
