"""Migration engine - main entry point for migration operations."""

from typing import Dict, Optional

from loguru import logger

from ..config.config import Config
from ..chain.artifacts import ArtifactStore
from ..chain.client import ChainClient
from ..chain.contracts import (
    LegacyRegistry,
    NewRegistry,
    StakingContract,
    UnderlyingToken,
)
from ..chain.deployer import ProxyDeployer
from ..chain.exceptions import LockerMigrationError
from .checkpoint import CheckpointStore
from .orchestrator import (
    MigrationOrchestrator,
    MigrationPlan,
    MigrationSummary,
    ProgressCallback,
    ScanResult,
)


class MigrationEngine:
    """Main migration engine that wires the chain layer to the orchestrator."""

    def __init__(self, config: Config, client: Optional[ChainClient] = None):
        """Initialize migration engine.

        Args:
            config: Migration configuration
            client: Pre-built chain client (tests inject one)
        """
        self.config = config
        self.logger = logger.bind(component='MigrationEngine')

        self.client = client or ChainClient(config.chain)
        self.artifacts = ArtifactStore(config.artifacts.path)

        names = config.artifacts
        contracts = config.contracts
        self.legacy_registry = LegacyRegistry(
            self.client, contracts.old_locker, self.artifacts.abi(names.locker)
        )
        self.staking = StakingContract(
            self.client, contracts.staking, self.artifacts.abi(names.staking)
        )
        self.deployer = ProxyDeployer(
            self.client,
            self.artifacts,
            proxy_name=names.proxy,
            proxy_admin_name=names.proxy_admin,
            initializer=names.initializer,
        )

    def create_plan(self, dry_run: Optional[bool] = None) -> MigrationPlan:
        """Create the migration plan from configuration.

        Args:
            dry_run: Overrides the configured dry-run flag when given

        Returns:
            Migration plan
        """
        migration = self.config.migration
        return MigrationPlan(
            locker_implementation=self.config.artifacts.locker,
            staking_implementation=self.config.artifacts.staking,
            underlying_token=self.config.contracts.underlying_token,
            staking=self.config.contracts.staking,
            proxy_admin=self.config.contracts.proxy_admin,
            start_id=migration.start_id,
            total_entities=migration.total_entities,
            batch_size=migration.batch_size,
            progress_interval=migration.progress_interval,
            dry_run=migration.dry_run if dry_run is None else dry_run,
        )

    def create_orchestrator(
        self,
        plan: MigrationPlan,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> MigrationOrchestrator:
        locker_abi = self.artifacts.abi(self.config.artifacts.locker)
        token_abi = self.artifacts.abi(self.config.artifacts.token)

        return MigrationOrchestrator(
            plan,
            deployer=self.deployer,
            legacy_registry=self.legacy_registry,
            staking=self.staking,
            registry_factory=lambda address: NewRegistry(
                self.client, address, locker_abi
            ),
            token_factory=lambda address: UnderlyingToken(
                self.client, address, token_abi
            ),
            clock=self.client.latest_timestamp,
            checkpoint_store=CheckpointStore(self.config.migration.checkpoint_file),
            progress_callback=progress_callback,
        )

    def migrate(
        self,
        dry_run: Optional[bool] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> MigrationSummary:
        """Execute the migration.

        Args:
            dry_run: Overrides the configured dry-run flag when given
            progress_callback: Called with (current, total, description)

        Returns:
            Migration summary
        """
        plan = self.create_plan(dry_run)

        if plan.dry_run:
            self.logger.info('Starting locker migration dry run')
        else:
            self.logger.info('Starting locker migration')
        self.test_connectivity()
        if not plan.dry_run:
            self.logger.info(f'Sending transactions from {self.client.address}')

        try:
            orchestrator = self.create_orchestrator(plan, progress_callback)
            summary = orchestrator.execute_migration()
        except LockerMigrationError as e:
            self.logger.error(f'Migration failed: {e}')
            raise

        return summary

    def scan(self, progress_callback: Optional[ProgressCallback] = None) -> ScanResult:
        """Read and filter the legacy range without touching any state."""
        self.test_connectivity()
        orchestrator = self.create_orchestrator(
            self.create_plan(dry_run=True), progress_callback
        )
        return orchestrator.scan()

    def test_connectivity(self) -> Dict[str, bool]:
        """Check the node answers and every configured contract has code.

        Returns:
            Contract label to presence mapping

        Raises:
            ChainConnectionError: If the node cannot be reached
            LockerMigrationError: If a configured contract has no code
        """
        self.logger.info('Testing connectivity to the chain')
        self.client.ensure_connected()

        contracts = self.config.contracts
        present = {
            'old_locker': self.client.has_code(contracts.old_locker),
            'staking': self.client.has_code(contracts.staking),
            'underlying_token': self.client.has_code(contracts.underlying_token),
            'proxy_admin': self.client.has_code(contracts.proxy_admin),
        }

        missing = [label for label, ok in present.items() if not ok]
        if missing:
            raise LockerMigrationError(
                f'No contract code at: {", ".join(missing)}',
                details={label: getattr(contracts, label) for label in missing},
            )

        self.logger.info(f'Connected to chain {self.client.chain_id}; contracts found')
        return present
