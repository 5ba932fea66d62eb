"""Tests for configuration management."""

import os
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from locker_migrate.config.config import ChainConfig, Config, MigrationConfig

CONTRACTS = {
    'old_locker': '0x' + '01' * 20,
    'staking': '0x' + '5a' * 20,
    'underlying_token': '0x' + '70' * 20,
    'proxy_admin': '0x' + 'ad' * 20,
}


class TestChainConfig:
    """Test chain configuration."""

    def test_valid_config(self):
        """Test valid configuration creation."""
        config = ChainConfig(
            rpc_url='https://rpc.example.org/',
            private_key='0x' + '11' * 32,
            request_timeout=10,
        )

        assert config.rpc_url == 'https://rpc.example.org'
        assert config.request_timeout == 10
        assert config.receipt_timeout == 300
        assert config.read_retries == 3

    def test_url_validation(self):
        """Test URL validation."""
        for url in ['https://rpc.example.org', 'http://localhost:8545']:
            assert ChainConfig(rpc_url=url).rpc_url == url

        with pytest.raises(ValidationError):
            ChainConfig(rpc_url='ws://localhost:8546')

    @pytest.mark.parametrize(
        'field, value',
        [('request_timeout', 0), ('receipt_timeout', -1), ('read_retries', -1)],
    )
    def test_invalid_numbers(self, field, value):
        """Test non-positive timeouts and negative retries are rejected."""
        with pytest.raises(ValidationError):
            ChainConfig(rpc_url='http://localhost:8545', **{field: value})


class TestMigrationConfig:
    """Test migration configuration."""

    def test_defaults(self):
        """Test default migration settings."""
        config = MigrationConfig(total_entities=10)

        assert config.start_id == 1
        assert config.batch_size == 100
        assert config.progress_interval == 50
        assert config.dry_run is False
        assert config.checkpoint_file is None

    @pytest.mark.parametrize(
        'overrides',
        [{'total_entities': 0}, {'batch_size': 0}, {'start_id': 0}],
    )
    def test_invalid_values(self, overrides):
        """Test invalid ranges and batch sizes."""
        data = {'total_entities': 10}
        data.update(overrides)

        with pytest.raises(ValidationError):
            MigrationConfig(**data)


class TestConfig:
    """Test main configuration class."""

    def test_config_from_dict(self):
        """Test configuration creation from dictionary."""
        config = Config(
            chain={'rpc_url': 'http://localhost:8545'},
            contracts=CONTRACTS,
            migration={'total_entities': 500, 'batch_size': 25},
        )

        assert config.migration.batch_size == 25
        assert config.contracts.staking.lower() == CONTRACTS['staking']
        assert config.artifacts.locker == 'LockerToken'
        assert config.logging.level == 'INFO'

    def test_invalid_address(self):
        """Test contract addresses must be 20-byte hex strings."""
        contracts = dict(CONTRACTS, staking='0x1234')

        with pytest.raises(ValidationError):
            Config(
                chain={'rpc_url': 'http://localhost:8545'},
                contracts=contracts,
                migration={'total_entities': 1},
            )

    def test_unknown_section(self):
        """Test extra top-level sections are rejected."""
        with pytest.raises(ValidationError):
            Config(
                chain={'rpc_url': 'http://localhost:8545'},
                contracts=CONTRACTS,
                migration={'total_entities': 1},
                source={'url': 'https://example.org'},
            )

    def test_config_from_file(self, tmp_path):
        """Test configuration loading from YAML file."""
        config_file = tmp_path / 'config.yaml'
        config_file.write_text(
            yaml.dump(
                {
                    'chain': {'rpc_url': 'https://rpc.example.org'},
                    'contracts': CONTRACTS,
                    'migration': {'total_entities': 3000, 'dry_run': True},
                    'logging': {'level': 'debug'},
                }
            )
        )

        with patch.dict(os.environ, {'DEPLOYER_PRIVATE_KEY': '0xabc'}):
            config = Config.from_file(str(config_file))

        assert config.migration.total_entities == 3000
        assert config.migration.dry_run is True
        assert config.logging.level == 'DEBUG'
        assert config.chain.private_key == '0xabc'

    def test_config_from_env(self):
        """Test configuration loading from environment variables."""
        env_vars = {
            'RPC_URL': 'https://rpc.example.org',
            'OLD_LOCKER_ADDRESS': CONTRACTS['old_locker'],
            'STAKING_ADDRESS': CONTRACTS['staking'],
            'UNDERLYING_TOKEN_ADDRESS': CONTRACTS['underlying_token'],
            'PROXY_ADMIN_ADDRESS': CONTRACTS['proxy_admin'],
            'TOTAL_ENTITIES': '1200',
            'MIGRATION_BATCH_SIZE': '75',
            'MIGRATION_DRY_RUN': 'true',
        }

        with patch.dict(os.environ, env_vars):
            config = Config.from_env()

        assert config.chain.rpc_url == 'https://rpc.example.org'
        assert config.migration.total_entities == 1200
        assert config.migration.batch_size == 75
        assert config.migration.dry_run is True
        assert config.artifacts.path == 'artifacts'

    def test_to_file_drops_private_key(self, tmp_path):
        """Test the private key is never written back to disk."""
        config = Config(
            chain={'rpc_url': 'http://localhost:8545', 'private_key': '0x' + '11' * 32},
            contracts=CONTRACTS,
            migration={'total_entities': 1},
        )
        config_file = tmp_path / 'out' / 'config.yaml'

        config.to_file(str(config_file))

        data = yaml.safe_load(config_file.read_text())
        assert 'private_key' not in data['chain']
        assert data['migration']['total_entities'] == 1

    def test_invalid_config_file(self, tmp_path):
        """Test handling of a file that is not a mapping."""
        config_file = tmp_path / 'config.yaml'
        config_file.write_text('- just\n- a list\n')

        with pytest.raises(ValueError):
            Config.from_file(str(config_file))

    def test_missing_config_file(self):
        """Test handling of missing configuration file."""
        with pytest.raises(FileNotFoundError):
            Config.from_file('/nonexistent/config.yaml')
