"""Chain and migration exceptions."""

from typing import Any, Dict, Optional


class LockerMigrationError(Exception):
    """Base exception for locker migration errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize migration error.

        Args:
            message: Error message
            details: Extra context printed alongside the error
        """
        super().__init__(message)
        self.details = details or {}


class ChainConnectionError(LockerMigrationError):
    """The RPC endpoint cannot be reached."""

    pass


class ArtifactNotFoundError(LockerMigrationError):
    """No compiled artifact exists for a contract name."""

    pass


class ContractReadError(LockerMigrationError):
    """A view call reverted or returned nothing usable."""

    pass


class ReadTimeoutError(ContractReadError):
    """A view call kept timing out after all retries."""

    def __init__(self, message: str, attempts: int = 1, **kwargs):
        """Initialize read timeout error.

        Args:
            message: Error message
            attempts: How many times the call was tried
            **kwargs: Additional arguments for base class
        """
        super().__init__(message, **kwargs)
        self.attempts = attempts


class TransactionError(LockerMigrationError):
    """A transaction could not be sent, reverted, or was never confirmed."""

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        receipt: Optional[Any] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.tx_hash = tx_hash
        self.receipt = receipt


class DeploymentError(LockerMigrationError):
    """The new registry could not be deployed."""

    pass


class UpgradeError(LockerMigrationError):
    """The staking proxy could not be upgraded."""

    pass


class RepointError(LockerMigrationError):
    """The staking contract could not be pointed at the new registry."""

    pass


class ApprovalError(LockerMigrationError):
    """The new registry could not be approved to pull the underlying token."""

    pass


class BatchWriteError(LockerMigrationError):
    """A migration batch failed to confirm."""

    def __init__(
        self, message: str, batch_index: int, confirmed_batches: int = 0, **kwargs
    ):
        """Initialize batch write error.

        Args:
            message: Error message
            batch_index: Zero-based index of the failing batch
            confirmed_batches: Batches confirmed before the failure
            **kwargs: Additional arguments for base class
        """
        super().__init__(message, **kwargs)
        self.batch_index = batch_index
        self.confirmed_batches = confirmed_batches
