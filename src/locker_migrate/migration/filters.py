"""Conversion of reconciled positions into migration units."""

from typing import Union

from ..models.migration import MigrationUnit
from ..models.position import ReconciledPosition, Skip, SkipReason


def filter_position(
    position: ReconciledPosition, now: int
) -> Union[MigrationUnit, Skip]:
    """Turn a reconciled position into a migration unit.

    Locks ending at or before ``now`` have nothing left to preserve and are
    skipped as expired.

    Args:
        position: Reconciled position
        now: Snapshot timestamp shared by the whole run

    Returns:
        A migration unit, or a Skip for expired locks
    """
    duration = position.lock.lock_end - now
    if duration <= 0:
        return Skip(
            entity_id=position.entity_id,
            reason=SkipReason.EXPIRED,
            detail=f'ended at {position.lock.lock_end}',
        )

    return MigrationUnit(
        entity_id=position.entity_id,
        amount=position.lock.amount,
        duration=duration,
        owner=position.ownership.effective_owner,
        stake_flag=position.ownership.is_custodied,
    )
