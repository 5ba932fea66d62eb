"""Submission of migration batches to the new locker."""

from typing import Callable, Optional

from loguru import logger

from ..chain.exceptions import BatchWriteError, TransactionError
from ..models.migration import Confirmation, MigrationBatch


class BatchWriter:
    """Imports batches into the new registry, one confirmed transaction each."""

    def __init__(self, registry):
        """Initialize batch writer.

        Args:
            registry: Object with ``bulk_import(amounts, durations, owners,
                stake_flags, on_sent=None)`` returning a confirmed receipt
        """
        self.registry = registry
        self.logger = logger.bind(component='BatchWriter')

    def write(
        self, batch: MigrationBatch, on_sent: Optional[Callable[[str], None]] = None
    ) -> Confirmation:
        """Submit one batch and wait for it to be mined.

        Args:
            batch: Batch to import
            on_sent: Receives the transaction hash before the receipt wait

        Returns:
            Confirmation of the mined transaction

        Raises:
            BatchWriteError: If the transaction fails or is never confirmed
        """
        amounts, durations, owners, stake_flags = batch.to_call_args()

        self.logger.debug(
            f'Batch {batch.index + 1}: tokens {batch.entity_ids[0]}'
            f'..{batch.entity_ids[-1]} ({batch.size} locks)'
        )

        try:
            receipt = self.registry.bulk_import(
                amounts, durations, owners, stake_flags, on_sent=on_sent
            )
        except TransactionError as e:
            raise BatchWriteError(
                f'Batch {batch.index + 1} failed: {e}',
                batch_index=batch.index,
                details={'tx_hash': e.tx_hash, 'entity_ids': batch.entity_ids},
            ) from e

        return Confirmation(
            batch_index=batch.index,
            tx_hash=receipt.tx_hash,
            block_number=receipt.block_number,
            gas_used=receipt.gas_used,
            size=batch.size,
        )
