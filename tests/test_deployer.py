"""Tests for proxy deployment and upgrades."""

import json
from unittest.mock import Mock

import pytest

from locker_migrate.chain.artifacts import ArtifactStore
from locker_migrate.chain.client import TransactionReceipt
from locker_migrate.chain.deployer import ProxyDeployer
from locker_migrate.chain.exceptions import ArtifactNotFoundError, LockerMigrationError

from conftest import PROXY_ADMIN, STAKING, TOKEN, USER_A, address

IMPLEMENTATION = address('11')
PROXY = address('22')


def write_artifact(root, name, bytecode='0x6080', abi=None):
    path = root / 'contracts' / f'{name}.sol'
    path.mkdir(parents=True, exist_ok=True)
    (path / f'{name}.json').write_text(
        json.dumps({'contractName': name, 'abi': abi or [], 'bytecode': bytecode})
    )


def deployed(contract_address):
    return TransactionReceipt(
        tx_hash='0x' + '01' * 32,
        block_number=1,
        gas_used=1,
        status=1,
        contract_address=contract_address,
    )


@pytest.fixture
def artifacts(tmp_path):
    for name in ('LockerToken', 'OmnichainStakingToken', 'TransparentUpgradeableProxy', 'ProxyAdmin'):
        write_artifact(tmp_path, name)
    write_artifact(tmp_path, 'ILocker', bytecode='0x')
    return ArtifactStore(str(tmp_path))


class TestProxyDeployer:
    """Test ProxyDeployer."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = Mock()
        self.client.address = USER_A
        self.client.encode_call.return_value = '0xc4d66de8'

    def test_deploy_upgradable_contract(self, artifacts):
        """Test implementation, then proxy with encoded initializer."""
        self.client.deploy.side_effect = [deployed(IMPLEMENTATION), deployed(PROXY)]

        result = ProxyDeployer(self.client, artifacts).deploy_upgradable_contract(
            'LockerToken', [TOKEN, STAKING], PROXY_ADMIN.lower(), 'LockerToken'
        )

        assert result.address == PROXY
        assert result.implementation == IMPLEMENTATION
        self.client.encode_call.assert_called_once_with([], 'initialize', [TOKEN, STAKING])
        proxy_call = self.client.deploy.call_args_list[1]
        assert proxy_call[0][2] == [IMPLEMENTATION, PROXY_ADMIN, '0xc4d66de8']

    def test_implementation_needs_bytecode(self, artifacts):
        """Test interfaces cannot be deployed."""
        with pytest.raises(ArtifactNotFoundError, match='no bytecode'):
            ProxyDeployer(self.client, artifacts).deploy_implementation('ILocker')

        self.client.deploy.assert_not_called()

    def test_upgrade(self, artifacts):
        """Test the proxy admin is asked to upgrade the staking proxy."""
        self.client.deploy.return_value = deployed(IMPLEMENTATION)
        self.client.call.return_value = USER_A

        ProxyDeployer(self.client, artifacts).upgrade_upgradable_contract(
            STAKING, 'OmnichainStakingToken', PROXY_ADMIN
        )

        admin = self.client.contract.return_value
        admin.functions.upgradeAndCall.assert_called_once_with(STAKING, IMPLEMENTATION, b'')
        self.client.send_transaction.assert_called_once()

    def test_upgrade_requires_admin_owner(self, artifacts):
        """Test a sender that does not own the proxy admin is refused."""
        self.client.deploy.return_value = deployed(IMPLEMENTATION)
        self.client.call.return_value = address('99')

        with pytest.raises(LockerMigrationError, match='does not own proxy admin'):
            ProxyDeployer(self.client, artifacts).upgrade_upgradable_contract(
                STAKING, 'OmnichainStakingToken', PROXY_ADMIN
            )

        self.client.send_transaction.assert_not_called()
