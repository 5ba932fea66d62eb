"""Records replayed into the new locker."""

from typing import List, Tuple

from pydantic import BaseModel, Field, validator
from web3 import Web3

from .position import is_zero_address


class MigrationUnit(BaseModel):
    """One validated position ready for ``migrateLocks``."""

    entity_id: int = Field(..., ge=1, description='Legacy token id (not sent)')
    amount: int = Field(..., description='Locked amount')
    duration: int = Field(..., description='Seconds left on the lock')
    owner: str = Field(..., description='Effective owner')
    stake_flag: bool = Field(..., description='Re-stake the new lock for the owner')

    class Config:
        """Pydantic configuration."""

        frozen = True

    @validator('amount')
    def validate_amount(cls, v):
        if v <= 0:
            raise ValueError('Amount must be positive')
        return v

    @validator('duration')
    def validate_duration(cls, v):
        if v <= 0:
            raise ValueError('Duration must be positive')
        return v

    @validator('owner')
    def validate_owner(cls, v):
        if is_zero_address(v):
            raise ValueError('Owner cannot be the zero address')
        return Web3.to_checksum_address(v)


class MigrationBatch(BaseModel):
    """Consecutive units submitted together in one transaction."""

    index: int = Field(..., ge=0, description='Zero-based batch position')
    units: List[MigrationUnit] = Field(..., description='Units in scan order')

    @validator('units')
    def validate_units(cls, v):
        if not v:
            raise ValueError('A batch needs at least one unit')
        return v

    @property
    def size(self) -> int:
        return len(self.units)

    @property
    def entity_ids(self) -> List[int]:
        return [unit.entity_id for unit in self.units]

    def to_call_args(self) -> Tuple[List[int], List[int], List[str], List[bool]]:
        """Flatten into the four aligned ``migrateLocks`` arrays."""
        return (
            [unit.amount for unit in self.units],
            [unit.duration for unit in self.units],
            [unit.owner for unit in self.units],
            [unit.stake_flag for unit in self.units],
        )


class Confirmation(BaseModel):
    """Proof that a batch landed on chain."""

    batch_index: int = Field(..., description='Zero-based batch position')
    tx_hash: str = Field(..., description='Transaction hash')
    block_number: int = Field(..., description='Block the batch was mined in')
    gas_used: int = Field(..., description='Gas used by the transaction')
    size: int = Field(..., description='Units imported')
