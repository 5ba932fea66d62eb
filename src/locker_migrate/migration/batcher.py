"""Splitting of accepted units into submission batches."""

from typing import List, Sequence

from ..models.migration import MigrationBatch, MigrationUnit

DEFAULT_BATCH_SIZE = 100


def batch_units(
    units: Sequence[MigrationUnit], size: int = DEFAULT_BATCH_SIZE
) -> List[MigrationBatch]:
    """Split units into contiguous batches of at most ``size``.

    Order is kept exactly; only the last batch may be shorter. A batch must
    fit in one ``migrateLocks`` call under the destination chain's gas limit.

    Args:
        units: Accepted units in scan order
        size: Maximum units per batch

    Returns:
        Batches in submission order
    """
    if size <= 0:
        raise ValueError('Batch size must be positive')

    return [
        MigrationBatch(index=index, units=list(units[start : start + size]))
        for index, start in enumerate(range(0, len(units), size))
    ]
