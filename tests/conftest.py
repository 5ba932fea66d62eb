"""Shared fixtures: in-memory stand-ins for the contracts."""

from typing import Dict, List, Optional, Tuple

import pytest
from web3 import Web3

from locker_migrate.chain.client import TransactionReceipt
from locker_migrate.chain.deployer import DeployedContract
from locker_migrate.chain.exceptions import ContractReadError, TransactionError
from locker_migrate.migration.checkpoint import CheckpointStore
from locker_migrate.migration.orchestrator import MigrationOrchestrator, MigrationPlan
from locker_migrate.models.position import ZERO_ADDRESS, LockRecord

NOW = 1_700_000_000
YEAR = 365 * 24 * 3600


def address(seed: str) -> str:
    return Web3.to_checksum_address('0x' + seed * (40 // len(seed)))


STAKING = address('5a')
USER_A = address('a1')
USER_B = address('b2')
USER_C = address('c3')
TOKEN = address('70')
PROXY_ADMIN = address('ad')
NEW_LOCKER = address('4e')


def receipt(n: int = 1) -> TransactionReceipt:
    return TransactionReceipt(
        tx_hash='0x' + f'{n:064x}', block_number=100 + n, gas_used=21000, status=1
    )


class FakeLegacyRegistry:
    """Old locker: ids missing from ``locks`` read as empty positions."""

    def __init__(
        self,
        locks: Dict[int, Tuple[int, int]],
        holders: Dict[int, str],
        failing_locks: Tuple[int, ...] = (),
    ):
        self.locks = locks
        self.holders = holders
        self.failing_locks = failing_locks
        self.lock_reads: List[int] = []

    def get_lock(self, entity_id: int) -> LockRecord:
        self.lock_reads.append(entity_id)
        if entity_id in self.failing_locks:
            raise ContractReadError(f'locked({entity_id}) failed: execution reverted')
        amount, end = self.locks.get(entity_id, (0, 0))
        return LockRecord(entity_id=entity_id, amount=amount, lock_end=end)

    def get_holder(self, entity_id: int) -> str:
        if entity_id not in self.holders:
            raise ContractReadError(f'ownerOf({entity_id}) failed: invalid token ID')
        return self.holders[entity_id]


class FakeStaking:
    def __init__(self, beneficiaries: Optional[Dict[int, str]] = None, calls=None):
        self.address = STAKING
        self.beneficiaries = beneficiaries or {}
        self.calls = calls if calls is not None else []
        self.fail_set_locker = False

    def get_beneficiary(self, entity_id: int) -> str:
        return self.beneficiaries.get(entity_id, ZERO_ADDRESS)

    def set_locker_pointer(self, locker: str) -> TransactionReceipt:
        if self.fail_set_locker:
            raise TransactionError('setLocker: transaction reverted')
        self.calls.append(('setLocker', locker))
        return receipt()


class FakeNewRegistry:
    """New locker.

    ``fail_on_batch`` makes that import fail before it is sent.
    ``timeout_on_batch`` sends it but loses the receipt; the import is
    applied unless ``timed_out_batch_mines`` is False.
    """

    def __init__(self, address_: str, calls: list, fail_on_batch: Optional[int] = None):
        self.address = address_
        self.calls = calls
        self.fail_on_batch = fail_on_batch
        self.timeout_on_batch: Optional[int] = None
        self.timed_out_batch_mines = True
        self.imports: List[tuple] = []
        self.receipts: Dict[str, TransactionReceipt] = {}
        self.sent = 0

    def underlying_token_address(self) -> str:
        return TOKEN

    def bulk_import(
        self, amounts, durations, owners, stake_flags, on_sent=None
    ) -> TransactionReceipt:
        if self.fail_on_batch is not None and len(self.imports) == self.fail_on_batch:
            raise TransactionError('migrateLocks: could not send: nonce too low')

        self.sent += 1
        mined = receipt(self.sent)
        if on_sent is not None:
            on_sent(mined.tx_hash)

        timed_out = self.timeout_on_batch == len(self.imports)
        if not timed_out or self.timed_out_batch_mines:
            self.imports.append((amounts, durations, owners, stake_flags))
            self.calls.append(('migrateLocks', len(amounts)))
            self.receipts[mined.tx_hash] = mined
        if timed_out:
            self.timeout_on_batch = None
            raise TransactionError(
                'migrateLocks: not confirmed within 300s', tx_hash=mined.tx_hash
            )
        return mined

    def import_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        return self.receipts.get(tx_hash)


class FakeToken:
    def __init__(self, address_: str, calls: list):
        self.address = address_
        self.calls = calls

    def approve(self, spender: str, amount: int) -> TransactionReceipt:
        self.calls.append(('approve', spender, amount))
        return receipt()


class FakeDeployer:
    def __init__(self, calls: list):
        self.calls = calls
        self.fail_deploy = False
        self.fail_upgrade = False

    def deploy_upgradable_contract(self, name, args, proxy_admin, label):
        if self.fail_deploy:
            raise TransactionError(f'deploy {label} proxy: could not send')
        self.calls.append(('deploy', name, tuple(args), proxy_admin))
        return DeployedContract(
            label=label, address=NEW_LOCKER, implementation=address('1f'), tx_hash='0x01'
        )

    def upgrade_upgradable_contract(self, proxy, name, proxy_admin):
        if self.fail_upgrade:
            raise TransactionError(f'upgrade {proxy}: transaction reverted')
        self.calls.append(('upgrade', proxy, name))
        return receipt()


class Chain:
    """Bundle of fakes sharing one call log."""

    def __init__(self, legacy: FakeLegacyRegistry, beneficiaries=None, fail_on_batch=None):
        self.calls: list = []
        self.legacy = legacy
        self.staking = FakeStaking(beneficiaries, self.calls)
        self.deployer = FakeDeployer(self.calls)
        self.registries: Dict[str, FakeNewRegistry] = {}
        self.tokens: Dict[str, FakeToken] = {}
        self.fail_on_batch = fail_on_batch

    def registry(self, address_: str) -> FakeNewRegistry:
        if address_ not in self.registries:
            self.registries[address_] = FakeNewRegistry(
                address_, self.calls, self.fail_on_batch
            )
        return self.registries[address_]

    def token(self, address_: str) -> FakeToken:
        return self.tokens.setdefault(address_, FakeToken(address_, self.calls))

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    def orchestrator(
        self,
        total_entities: int,
        batch_size: int = 100,
        dry_run: bool = False,
        checkpoint_file: Optional[str] = None,
        now: int = NOW,
        **plan_overrides,
    ) -> MigrationOrchestrator:
        plan = MigrationPlan(
            locker_implementation='LockerToken',
            staking_implementation='OmnichainStakingToken',
            underlying_token=TOKEN,
            staking=STAKING,
            proxy_admin=PROXY_ADMIN,
            total_entities=total_entities,
            batch_size=batch_size,
            dry_run=dry_run,
            **plan_overrides,
        )
        return MigrationOrchestrator(
            plan,
            deployer=self.deployer,
            legacy_registry=self.legacy,
            staking=self.staking,
            registry_factory=self.registry,
            token_factory=self.token,
            clock=lambda: now,
            checkpoint_store=CheckpointStore(checkpoint_file),
        )


@pytest.fixture
def scenario_a() -> Chain:
    """Tokens 1..3: amounts [100, 0, 50], token 3 staked for USER_B."""
    legacy = FakeLegacyRegistry(
        locks={1: (100, NOW + YEAR), 3: (50, NOW + 2 * YEAR)},
        holders={1: USER_A, 2: USER_A, 3: STAKING},
    )
    return Chain(legacy, beneficiaries={3: USER_B})


def live_chain(count: int, fail_on_batch: Optional[int] = None) -> Chain:
    """``count`` live locks owned directly by USER_A."""
    legacy = FakeLegacyRegistry(
        locks={i: (i * 10, NOW + i) for i in range(1, count + 1)},
        holders={i: USER_A for i in range(1, count + 1)},
    )
    return Chain(legacy, fail_on_batch=fail_on_batch)
