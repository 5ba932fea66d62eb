"""Migration orchestrator for moving legacy locks into the new locker."""

from datetime import datetime
from enum import Enum
from functools import partial
from typing import Callable, Collection, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from ..chain.client import MAX_UINT256
from ..chain.exceptions import (
    ApprovalError,
    BatchWriteError,
    DeploymentError,
    LockerMigrationError,
    RepointError,
    UpgradeError,
)
from ..models.migration import Confirmation, MigrationBatch, MigrationUnit
from ..models.position import Skip, SkipReason
from .batcher import batch_units
from .checkpoint import Checkpoint, CheckpointStore, Stage
from .filters import filter_position
from .reconciler import Reconciler
from .writer import BatchWriter

ProgressCallback = Callable[[int, int, str], None]

_QUIET_SKIPS = (SkipReason.NO_POSITION, SkipReason.ALREADY_MIGRATED)


class MigrationState(str, Enum):
    """Orchestrator states, in the order a run passes through them."""

    INIT = 'init'
    DEPLOYING = 'deploying'
    UPGRADING = 'upgrading'
    REPOINTING = 'repointing'
    REPOINTED = 'repointed'
    SCANNING = 'scanning'
    MIGRATING = 'migrating'
    DONE = 'done'
    FAILED = 'failed'


class MigrationPlan(BaseModel):
    """Migration execution plan."""

    locker_implementation: str = Field(..., description='New locker artifact name')
    staking_implementation: str = Field(..., description='Staking artifact name')
    underlying_token: str = Field(..., description='Underlying token address')
    staking: str = Field(..., description='Staking proxy address')
    proxy_admin: str = Field(..., description='Proxy admin address')

    start_id: int = Field(default=1, description='First legacy token id')
    total_entities: int = Field(..., description='Last legacy token id')
    batch_size: int = Field(default=100, description='Units per batch')
    progress_interval: int = Field(default=50, description='Scan progress interval')
    dry_run: bool = Field(default=False, description='Scan only')


class ScanResult(BaseModel):
    """Outcome of reading and filtering the whole legacy id range."""

    now: int = Field(..., description='Block timestamp all durations use')
    scanned: int = Field(default=0, description='Token ids visited')
    units: List[MigrationUnit] = Field(default_factory=list)
    skips: List[Skip] = Field(default_factory=list)

    def skip_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for skip in self.skips:
            counts[skip.reason.value] = counts.get(skip.reason.value, 0) + 1
        return counts


class MigrationSummary(BaseModel):
    """Summary of migration results."""

    state: MigrationState = Field(..., description='Final orchestrator state')
    total_entities: int = Field(..., description='Token ids scanned')
    prepared_units: int = Field(..., description='Positions accepted for migration')
    skipped_by_reason: Dict[str, int] = Field(default_factory=dict)

    batches_total: int = Field(default=0, description='Batches planned')
    batches_confirmed: int = Field(default=0, description='Batches mined')
    confirmations: List[Confirmation] = Field(default_factory=list)

    new_registry: Optional[str] = Field(default=None, description='New locker proxy')
    snapshot_timestamp: Optional[int] = Field(default=None)
    dry_run: bool = Field(default=False)

    # Timing
    started_at: datetime = Field(..., description='Migration start time')
    completed_at: Optional[datetime] = Field(
        default=None, description='Migration completion time'
    )

    @property
    def skipped(self) -> int:
        return sum(self.skipped_by_reason.values())


class MigrationOrchestrator:
    """Runs the migration state machine.

    ``INIT -> DEPLOYING -> UPGRADING -> REPOINTING -> REPOINTED -> SCANNING ->
    MIGRATING -> DONE``. Every step is a blocking call; nothing runs concurrently.
    """

    def __init__(
        self,
        plan: MigrationPlan,
        deployer,
        legacy_registry,
        staking,
        registry_factory: Callable[[str], object],
        token_factory: Callable[[str], object],
        clock: Callable[[], int],
        checkpoint_store: Optional[CheckpointStore] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """Initialize migration orchestrator.

        Args:
            plan: What to migrate and with which settings
            deployer: Proxy deployment and upgrade service
            legacy_registry: Read access to the old locker
            staking: The staking contract wrapper
            registry_factory: Binds the new locker wrapper to an address
            token_factory: Binds the underlying token wrapper to an address
            clock: Returns the latest block timestamp
            checkpoint_store: Where progress is persisted between runs
            progress_callback: Called with (current, total, description)
        """
        self.plan = plan
        self.deployer = deployer
        self.staking = staking
        self.registry_factory = registry_factory
        self.token_factory = token_factory
        self.clock = clock
        self.checkpoint_store = checkpoint_store or CheckpointStore()
        self.progress_callback = progress_callback

        self.reconciler = Reconciler(legacy_registry, staking)
        self.state = MigrationState.INIT
        self.logger = logger.bind(component='MigrationOrchestrator')

    def execute_migration(self) -> MigrationSummary:
        """Execute the migration according to the plan.

        Returns:
            Migration summary

        Raises:
            LockerMigrationError: On the first fatal error; confirmed batches
                stay applied and are recorded in the checkpoint
        """
        started_at = datetime.now()
        checkpoint = self.checkpoint_store.load()
        if checkpoint.has(Stage.DONE) and not self.plan.dry_run:
            raise LockerMigrationError(
                'Checkpoint shows this migration already completed; '
                'remove it to start a new one',
                details={'new_registry': checkpoint.new_registry},
            )
        if self.checkpoint_store.enabled and not self.plan.dry_run:
            self.logger.info(f'Recording progress in {self.checkpoint_store.path}')

        registry = None
        try:
            if self.plan.dry_run:
                self.logger.info('Dry run: skipping deployment, upgrade and re-pointing')
                if checkpoint.pending_batch is not None:
                    self.logger.warning(
                        f'Checkpoint has an unsettled batch '
                        f'{checkpoint.pending_batch.tx_hash}; its tokens are listed again'
                    )
            else:
                registry = self._deploy_registry(checkpoint)
                self._upgrade_staking(checkpoint)
                self._repoint_staking(registry, checkpoint)
                self._settle_pending_batch(registry, checkpoint)

            scan = self.scan(skip_ids=set(checkpoint.migrated_entity_ids))
            batches = batch_units(scan.units, self.plan.batch_size)

            self.logger.info(
                f'Prepared {len(scan.units)} tokens for migration '
                f'({scan.scanned} scanned, {len(scan.skips)} skipped)'
            )

            confirmations: List[Confirmation] = []
            if not scan.units:
                self.logger.info('No tokens to migrate!')
            elif self.plan.dry_run:
                self.logger.info(
                    f'Dry run: would submit {len(batches)} batches of up to '
                    f'{self.plan.batch_size}'
                )
            else:
                self._approve_registry(registry, checkpoint)
                confirmations = self._migrate_batches(registry, batches, checkpoint)

            self._transition(MigrationState.DONE)
            if not self.plan.dry_run:
                checkpoint.mark(Stage.DONE)
                self.checkpoint_store.save(checkpoint)

        except LockerMigrationError as e:
            failed_in = self.state
            self._transition(MigrationState.FAILED)
            self.logger.error(f'Migration failed while {failed_in.value}: {e}')
            raise

        summary = MigrationSummary(
            state=self.state,
            total_entities=scan.scanned,
            prepared_units=len(scan.units),
            skipped_by_reason=scan.skip_counts(),
            batches_total=len(batches),
            batches_confirmed=len(confirmations),
            confirmations=confirmations,
            new_registry=registry.address if registry is not None else None,
            snapshot_timestamp=scan.now,
            dry_run=self.plan.dry_run,
            started_at=started_at,
            completed_at=datetime.now(),
        )

        self.logger.info(
            f'Migration completed: {summary.prepared_units} prepared, '
            f'{summary.batches_confirmed}/{summary.batches_total} batches confirmed'
        )
        return summary

    def scan(self, skip_ids: Collection[int] = ()) -> ScanResult:
        """Reconcile and filter every legacy token id.

        The block timestamp is sampled once and used for every duration.

        Args:
            skip_ids: Token ids already imported by an earlier run

        Returns:
            Accepted units in ascending id order plus the skips
        """
        self._transition(MigrationState.SCANNING)

        now = self.clock()
        total = self.plan.total_entities
        result = ScanResult(now=now)

        self.logger.info(
            f'Gathering token data for ids {self.plan.start_id}..{total} '
            f'(snapshot timestamp {now})'
        )

        for entity_id in range(self.plan.start_id, total + 1):
            result.scanned += 1
            if entity_id % self.plan.progress_interval == 0:
                self.logger.info(f'Processing token {entity_id}/{total}')
                self._report_progress(entity_id, total, 'Scanning tokens')

            if entity_id in skip_ids:
                outcome = Skip(entity_id=entity_id, reason=SkipReason.ALREADY_MIGRATED)
            else:
                outcome = self.reconciler.reconcile(entity_id)
                if not isinstance(outcome, Skip):
                    outcome = filter_position(outcome, now)

            if isinstance(outcome, Skip):
                if outcome.reason in _QUIET_SKIPS:
                    self.logger.debug(f'Skipping {outcome}')
                else:
                    self.logger.warning(f'Skipping {outcome}')
                result.skips.append(outcome)
            else:
                result.units.append(outcome)

        self._report_progress(total, total, 'Scan complete')
        return result

    def _deploy_registry(self, checkpoint: Checkpoint):
        self._transition(MigrationState.DEPLOYING)

        if checkpoint.has(Stage.DEPLOYED):
            self.logger.info(f'Reusing new locker at {checkpoint.new_registry}')
            return self.registry_factory(checkpoint.new_registry)

        try:
            deployed = self.deployer.deploy_upgradable_contract(
                self.plan.locker_implementation,
                [self.plan.underlying_token, self.plan.staking],
                self.plan.proxy_admin,
                self.plan.locker_implementation,
            )
        except LockerMigrationError as e:
            raise DeploymentError(f'New locker deployment failed: {e}') from e

        checkpoint.new_registry = deployed.address
        checkpoint.mark(Stage.DEPLOYED)
        self.checkpoint_store.save(checkpoint)
        return self.registry_factory(deployed.address)

    def _upgrade_staking(self, checkpoint: Checkpoint) -> None:
        self._transition(MigrationState.UPGRADING)

        if checkpoint.has(Stage.UPGRADED):
            self.logger.info('Staking already upgraded')
            return

        try:
            self.deployer.upgrade_upgradable_contract(
                self.plan.staking,
                self.plan.staking_implementation,
                self.plan.proxy_admin,
            )
        except LockerMigrationError as e:
            raise UpgradeError(f'Staking upgrade failed: {e}') from e

        checkpoint.mark(Stage.UPGRADED)
        self.checkpoint_store.save(checkpoint)

    def _repoint_staking(self, registry, checkpoint: Checkpoint) -> None:
        self._transition(MigrationState.REPOINTING)

        if not checkpoint.has(Stage.REPOINTED):
            try:
                self.staking.set_locker_pointer(registry.address)
            except LockerMigrationError as e:
                raise RepointError(f'Setting staking locker failed: {e}') from e

            checkpoint.mark(Stage.REPOINTED)
            self.checkpoint_store.save(checkpoint)

        self._transition(MigrationState.REPOINTED)

    def _settle_pending_batch(self, registry, checkpoint: Checkpoint) -> None:
        """Find out what happened to a batch sent by an earlier run.

        Raises:
            LockerMigrationError: If that transaction has no receipt yet
        """
        pending = checkpoint.pending_batch
        if pending is None:
            return

        receipt = registry.import_receipt(pending.tx_hash)
        if receipt is None:
            raise LockerMigrationError(
                f'Batch {pending.batch_index + 1} transaction {pending.tx_hash} '
                'has no receipt yet; wait for it to be mined, or remove pending_batch '
                'from the checkpoint if the node dropped it',
                details={
                    'tx_hash': pending.tx_hash,
                    'entity_ids': pending.entity_ids,
                },
            )

        if receipt.success:
            self.logger.info(
                f'Batch {pending.batch_index + 1} ({pending.tx_hash}) was mined in '
                f'block {receipt.block_number}; {len(pending.entity_ids)} tokens '
                'recorded as migrated'
            )
        else:
            self.logger.warning(
                f'Batch {pending.batch_index + 1} ({pending.tx_hash}) reverted; '
                'its tokens will be imported again'
            )
        checkpoint.settle_pending(receipt.success)
        self.checkpoint_store.save(checkpoint)

    def _approve_registry(self, registry, checkpoint: Checkpoint) -> None:
        if checkpoint.has(Stage.APPROVED):
            return

        try:
            token = self.token_factory(registry.underlying_token_address())
            token.approve(registry.address, MAX_UINT256)
        except LockerMigrationError as e:
            raise ApprovalError(f'Approving the new locker failed: {e}') from e

        self.logger.info(f'Approved {registry.address} to pull the underlying token')
        checkpoint.mark(Stage.APPROVED)
        self.checkpoint_store.save(checkpoint)

    def _migrate_batches(
        self, registry, batches: List[MigrationBatch], checkpoint: Checkpoint
    ) -> List[Confirmation]:
        self._transition(MigrationState.MIGRATING)

        writer = BatchWriter(registry)
        confirmations: List[Confirmation] = []

        for batch in batches:
            self.logger.info(f'Processing batch {batch.index + 1} of {len(batches)}')
            self._report_progress(batch.index, len(batches), 'Migrating batches')

            try:
                confirmation = writer.write(
                    batch,
                    on_sent=partial(self._record_pending, checkpoint, batch),
                )
            except BatchWriteError as e:
                e.confirmed_batches = len(confirmations)
                self.logger.error(
                    f'Halted at batch {batch.index + 1} of {len(batches)}; '
                    f'{len(confirmations)} batches were confirmed'
                )
                raise

            confirmations.append(confirmation)
            checkpoint.record_batch(batch)
            self.checkpoint_store.save(checkpoint)
            self.logger.info(
                f'Batch {batch.index + 1} confirmed in block '
                f'{confirmation.block_number} ({confirmation.tx_hash})'
            )

        self._report_progress(len(batches), len(batches), 'Migration complete')
        return confirmations

    def _record_pending(
        self, checkpoint: Checkpoint, batch: MigrationBatch, tx_hash: str
    ) -> None:
        checkpoint.mark_pending(batch, tx_hash)
        self.checkpoint_store.save(checkpoint)

    def _transition(self, state: MigrationState) -> None:
        self.logger.debug(f'{self.state.value} -> {state.value}')
        self.state = state

    def _report_progress(self, current: int, total: int, description: str) -> None:
        if self.progress_callback is not None:
            self.progress_callback(current, total, description)
