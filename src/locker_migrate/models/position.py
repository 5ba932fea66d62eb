"""Legacy lock positions and how their ownership resolves."""

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, validator
from web3 import Web3

ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'


def is_zero_address(address: Optional[str]) -> bool:
    """True for ``None``, empty strings and the zero address."""
    if not address:
        return True
    return int(address, 16) == 0


def same_address(a: str, b: str) -> bool:
    return a.lower() == b.lower()


class SkipReason(str, Enum):
    """Why a legacy token id produced no migration unit."""

    NO_POSITION = 'no_position'
    LOOKUP_FAILED = 'lookup_failed'
    NO_OWNER = 'no_owner'
    EXPIRED = 'expired'
    ALREADY_MIGRATED = 'already_migrated'


class Skip(BaseModel):
    """A token id left out of the migration."""

    entity_id: int = Field(..., description='Legacy token id')
    reason: SkipReason = Field(..., description='Why it was skipped')
    detail: Optional[str] = Field(default=None, description='Extra context')

    def __str__(self) -> str:
        text = f'token {self.entity_id}: {self.reason.value}'
        return f'{text} ({self.detail})' if self.detail else text


class LockRecord(BaseModel):
    """Lock state of one legacy token."""

    entity_id: int = Field(..., ge=1, description='Legacy token id')
    amount: int = Field(..., ge=0, description='Locked amount')
    lock_end: int = Field(..., ge=0, description='Unlock timestamp')

    class Config:
        """Pydantic configuration."""

        frozen = True


class _OwnerBase(BaseModel):
    address: str = Field(..., description='Owner address')

    class Config:
        """Pydantic configuration."""

        frozen = True

    @validator('address')
    def validate_address(cls, v):
        """Owners are checksummed and never the zero address."""
        if is_zero_address(v):
            raise ValueError('Owner cannot be the zero address')
        return Web3.to_checksum_address(v)


class DirectOwner(_OwnerBase):
    """The token is held by its owner."""

    kind: Literal['direct'] = 'direct'


class CustodiedOwner(_OwnerBase):
    """The token is held by the staking contract on behalf of a staker."""

    kind: Literal['custodied'] = 'custodied'


Owner = Union[DirectOwner, CustodiedOwner]


class OwnershipRecord(BaseModel):
    """Who holds a legacy token and who it belongs to."""

    entity_id: int = Field(..., ge=1, description='Legacy token id')
    raw_owner: str = Field(..., description='Direct holder of the token')
    owner: Owner = Field(..., discriminator='kind', description='Effective owner')

    class Config:
        """Pydantic configuration."""

        frozen = True

    @property
    def is_custodied(self) -> bool:
        return isinstance(self.owner, CustodiedOwner)

    @property
    def effective_owner(self) -> str:
        return self.owner.address


class ReconciledPosition(BaseModel):
    """Lock state and resolved ownership of one legacy token."""

    lock: LockRecord
    ownership: OwnershipRecord

    class Config:
        """Pydantic configuration."""

        frozen = True

    @property
    def entity_id(self) -> int:
        return self.lock.entity_id
