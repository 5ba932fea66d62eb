"""Deployment and upgrade of transparent upgradeable proxies."""

from typing import Any, Sequence

from loguru import logger
from pydantic import BaseModel
from web3 import Web3

from .artifacts import ArtifactStore
from .client import ChainClient, TransactionReceipt
from .exceptions import ArtifactNotFoundError, LockerMigrationError


class DeployedContract(BaseModel):
    """Result of deploying an implementation behind a proxy."""

    label: str
    address: str
    implementation: str
    tx_hash: str


class ProxyDeployer:
    """Deploys implementations behind ``TransparentUpgradeableProxy`` and
    upgrades existing proxies through their ``ProxyAdmin``.
    """

    def __init__(
        self,
        client: ChainClient,
        artifacts: ArtifactStore,
        proxy_name: str = 'TransparentUpgradeableProxy',
        proxy_admin_name: str = 'ProxyAdmin',
        initializer: str = 'initialize',
    ):
        self.client = client
        self.artifacts = artifacts
        self.proxy_name = proxy_name
        self.proxy_admin_name = proxy_admin_name
        self.initializer = initializer
        self.logger = logger.bind(component='ProxyDeployer')

    def deploy_implementation(self, name: str) -> str:
        """Deploy a fresh implementation contract and return its address."""
        artifact = self.artifacts.load(name)
        if not artifact.deployable:
            raise ArtifactNotFoundError(
                f'Artifact {name} has no bytecode', details={'contract': name}
            )
        receipt = self.client.deploy(
            artifact.abi, artifact.bytecode, [], f'deploy {name} implementation'
        )
        self.logger.info(f'{name} implementation deployed at {receipt.contract_address}')
        return receipt.contract_address

    def deploy_upgradable_contract(
        self,
        implementation_name: str,
        constructor_args: Sequence[Any],
        proxy_admin: str,
        label: str,
    ) -> DeployedContract:
        """Deploy an implementation and a proxy that initializes it.

        Args:
            implementation_name: Artifact name of the implementation
            constructor_args: Arguments passed to the initializer
            proxy_admin: Address administering the proxy
            label: Name used in logs

        Returns:
            Proxy and implementation addresses
        """
        implementation = self.deploy_implementation(implementation_name)

        init_data = self.client.encode_call(
            self.artifacts.abi(implementation_name),
            self.initializer,
            constructor_args,
        )
        proxy = self.artifacts.load(self.proxy_name)
        receipt = self.client.deploy(
            proxy.abi,
            proxy.bytecode,
            [implementation, Web3.to_checksum_address(proxy_admin), init_data],
            f'deploy {label} proxy',
        )
        self.logger.info(f'{label} proxy deployed at {receipt.contract_address}')

        return DeployedContract(
            label=label,
            address=receipt.contract_address,
            implementation=implementation,
            tx_hash=receipt.tx_hash,
        )

    def upgrade_upgradable_contract(
        self,
        proxy_address: str,
        new_implementation_name: str,
        proxy_admin: str,
    ) -> TransactionReceipt:
        """Point an existing proxy at a newly deployed implementation."""
        implementation = self.deploy_implementation(new_implementation_name)

        admin = self.client.contract(
            proxy_admin, self.artifacts.abi(self.proxy_admin_name)
        )
        owner = self.client.call(admin.functions.owner(), 'ProxyAdmin.owner()')
        if owner != self.client.address:
            raise LockerMigrationError(
                f'{self.client.address} does not own proxy admin {proxy_admin}',
                details={'proxy': proxy_address},
            )

        receipt = self.client.send_transaction(
            admin.functions.upgradeAndCall(
                Web3.to_checksum_address(proxy_address), implementation, b''
            ),
            f'upgrade {proxy_address} to {new_implementation_name}',
        )
        self.logger.info(
            f'Proxy {proxy_address} upgraded to {new_implementation_name} '
            f'at {implementation}'
        )
        return receipt
