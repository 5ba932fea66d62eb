"""Resolution of legacy lock state and effective ownership."""

from typing import Union

from loguru import logger

from ..chain.exceptions import ContractReadError, ReadTimeoutError
from ..models.position import (
    CustodiedOwner,
    DirectOwner,
    OwnershipRecord,
    ReconciledPosition,
    Skip,
    SkipReason,
    is_zero_address,
    same_address,
)


class Reconciler:
    """Reads one legacy token at a time and works out who really owns it.

    Tokens held by the staking contract are custodied: the registry reports
    the staking contract as holder, and the staker is looked up through the
    staking contract's ``lockedByToken`` index.
    """

    def __init__(self, legacy_registry, staking):
        """Initialize reconciler.

        Args:
            legacy_registry: Object with ``get_lock(id)`` and ``get_holder(id)``
            staking: Object with ``address`` and ``get_beneficiary(id)``
        """
        self.legacy_registry = legacy_registry
        self.staking = staking
        self.logger = logger.bind(component='Reconciler')

    def reconcile(self, entity_id: int) -> Union[ReconciledPosition, Skip]:
        """Reconcile a single legacy token.

        Args:
            entity_id: Legacy token id

        Returns:
            The reconciled position, or a Skip saying why there is none

        Raises:
            ReadTimeoutError: If the node keeps timing out
        """
        try:
            lock = self.legacy_registry.get_lock(entity_id)
        except ReadTimeoutError:
            raise
        except ContractReadError as e:
            return Skip(
                entity_id=entity_id, reason=SkipReason.LOOKUP_FAILED, detail=str(e)
            )

        if lock.amount == 0:
            return Skip(entity_id=entity_id, reason=SkipReason.NO_POSITION)

        try:
            holder = self.legacy_registry.get_holder(entity_id)
            if is_zero_address(holder):
                return Skip(entity_id=entity_id, reason=SkipReason.NO_OWNER)

            if same_address(holder, self.staking.address):
                beneficiary = self.staking.get_beneficiary(entity_id)
                if is_zero_address(beneficiary):
                    return Skip(
                        entity_id=entity_id,
                        reason=SkipReason.NO_OWNER,
                        detail='staked without a beneficiary',
                    )
                owner = CustodiedOwner(address=beneficiary)
            else:
                owner = DirectOwner(address=holder)
        except ReadTimeoutError:
            raise
        except ContractReadError as e:
            return Skip(
                entity_id=entity_id, reason=SkipReason.LOOKUP_FAILED, detail=str(e)
            )

        self.logger.debug(
            f'Token {entity_id}: {lock.amount} owned by {owner.address} ({owner.kind})'
        )

        return ReconciledPosition(
            lock=lock,
            ownership=OwnershipRecord(
                entity_id=entity_id, raw_owner=holder, owner=owner
            ),
        )
