"""Typed wrappers around the contracts the migration talks to."""

from typing import Any, Callable, Dict, List, Optional, Sequence

from web3 import Web3

from ..models.position import LockRecord
from .client import ChainClient, TransactionReceipt


class _BoundContract:
    """A contract address plus its ABI, called through a ``ChainClient``."""

    def __init__(self, client: ChainClient, address: str, abi: List[Dict[str, Any]]):
        self.client = client
        self.address = Web3.to_checksum_address(address)
        self.contract = client.contract(self.address, abi)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.address})'


class LegacyRegistry(_BoundContract):
    """Read-only view of the old locker."""

    def get_lock(self, entity_id: int) -> LockRecord:
        # locked() returns the LockedBalance struct; amount and end lead it
        locked = self.client.call(
            self.contract.functions.locked(entity_id), f'locked({entity_id})'
        )
        return LockRecord(
            entity_id=entity_id, amount=int(locked[0]), lock_end=int(locked[1])
        )

    def get_holder(self, entity_id: int) -> str:
        """Current holder of the lock NFT; reverts for unknown ids."""
        return self.client.call(
            self.contract.functions.ownerOf(entity_id), f'ownerOf({entity_id})'
        )


class StakingContract(_BoundContract):
    """The staking contract that custodies lock NFTs for its stakers."""

    def get_beneficiary(self, entity_id: int) -> str:
        """Staker a custodied lock belongs to."""
        return self.client.call(
            self.contract.functions.lockedByToken(entity_id),
            f'lockedByToken({entity_id})',
        )

    def set_locker_pointer(self, locker: str) -> TransactionReceipt:
        return self.client.send_transaction(
            self.contract.functions.setLocker(Web3.to_checksum_address(locker)),
            f'setLocker({locker})',
        )


class NewRegistry(_BoundContract):
    """The freshly deployed locker that receives migrated positions."""

    def underlying_token_address(self) -> str:
        return self.client.call(self.contract.functions.underlying(), 'underlying()')

    def bulk_import(
        self,
        amounts: Sequence[int],
        durations: Sequence[int],
        owners: Sequence[str],
        stake_flags: Sequence[bool],
        on_sent: Optional[Callable[[str], None]] = None,
    ) -> TransactionReceipt:
        """Create many locks in one ``migrateLocks`` transaction.

        The four arrays are aligned by index and must have the same length.
        ``on_sent`` receives the transaction hash once the node has accepted
        it, before the receipt wait starts.
        """
        if not (len(amounts) == len(durations) == len(owners) == len(stake_flags)):
            raise ValueError('migrateLocks arrays must have the same length')
        return self.client.send_transaction(
            self.contract.functions.migrateLocks(
                list(amounts), list(durations), list(owners), list(stake_flags)
            ),
            f'migrateLocks({len(amounts)} locks)',
            on_sent=on_sent,
        )

    def import_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        """Receipt of an earlier ``migrateLocks`` transaction, if it was mined."""
        return self.client.get_receipt(tx_hash)


class UnderlyingToken(_BoundContract):
    """ERC-20 token the locks are denominated in."""

    def approve(self, spender: str, amount: int) -> TransactionReceipt:
        return self.client.send_transaction(
            self.contract.functions.approve(Web3.to_checksum_address(spender), amount),
            f'approve({spender})',
        )

