"""Configuration management for the Locker Migration Tool."""

from typing import Optional, Dict, Any
from pathlib import Path
import os
import re

from pydantic import BaseModel, Field, validator
import yaml
from dotenv import load_dotenv
from web3 import Web3

_ADDRESS_RE = re.compile(r'^0x[0-9a-fA-F]{40}$')


def _checksum(value: str) -> str:
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        raise ValueError(f'Not a valid 20-byte hex address: {value!r}')
    return Web3.to_checksum_address(value)


class ChainConfig(BaseModel):
    """Connection and signing settings for the target chain."""

    rpc_url: str = Field(..., description='JSON-RPC endpoint URL')
    private_key: Optional[str] = Field(
        default=None, description='Private key of the deployer/funding identity'
    )
    request_timeout: int = Field(default=30, description='RPC request timeout in seconds')
    receipt_timeout: int = Field(
        default=300, description='Seconds to wait for a transaction receipt'
    )
    poll_interval: float = Field(
        default=2.0, description='Seconds between receipt polls'
    )
    read_retries: int = Field(
        default=3, description='Retries for a read call that timed out'
    )
    retry_backoff: float = Field(
        default=2.0, description='Seconds to wait between read retries'
    )

    @validator('rpc_url')
    def validate_rpc_url(cls, v):
        """Validate RPC URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('RPC URL must start with http:// or https://')
        return v.rstrip('/')

    @validator('request_timeout', 'receipt_timeout')
    def validate_timeouts(cls, v):
        """Validate timeouts are positive."""
        if v <= 0:
            raise ValueError('Timeouts must be positive')
        return v

    @validator('poll_interval')
    def validate_poll_interval(cls, v):
        if v <= 0:
            raise ValueError('Poll interval must be positive')
        return v

    @validator('read_retries')
    def validate_read_retries(cls, v):
        if v < 0:
            raise ValueError('Read retries cannot be negative')
        return v


class ContractsConfig(BaseModel):
    """Addresses of the pre-existing contracts."""

    old_locker: str = Field(..., description='Legacy locker registry address')
    staking: str = Field(..., description='Staking contract (proxy) address')
    underlying_token: str = Field(..., description='Underlying token address')
    proxy_admin: str = Field(..., description='Proxy admin address')

    @validator('old_locker', 'staking', 'underlying_token', 'proxy_admin')
    def validate_address(cls, v):
        """Validate and checksum contract addresses."""
        return _checksum(v)


class ArtifactsConfig(BaseModel):
    """Where compiled contracts live and what they are called."""

    path: str = Field(default='artifacts', description='Hardhat artifacts directory')
    locker: str = Field(default='LockerToken', description='Locker contract name')
    staking: str = Field(
        default='OmnichainStakingToken', description='Staking contract name'
    )
    token: str = Field(default='MAHA', description='Underlying token contract name')
    proxy: str = Field(
        default='TransparentUpgradeableProxy', description='Proxy contract name'
    )
    proxy_admin: str = Field(default='ProxyAdmin', description='Proxy admin contract name')
    initializer: str = Field(
        default='initialize', description='Initializer called through the proxy'
    )


class MigrationConfig(BaseModel):
    """Migration-specific configuration."""

    total_entities: int = Field(..., description='Highest legacy token id to scan')
    start_id: int = Field(default=1, description='First legacy token id to scan')
    batch_size: int = Field(default=100, description='Positions per migrateLocks call')
    progress_interval: int = Field(
        default=50, description='Log scan progress every N token ids'
    )
    dry_run: bool = Field(default=False, description='Scan only, send no transactions')
    checkpoint_file: Optional[str] = Field(
        default=None, description='Path of the resumable checkpoint file'
    )

    @validator('total_entities')
    def validate_total_entities(cls, v):
        if v <= 0:
            raise ValueError('Total entities must be positive')
        return v

    @validator('start_id')
    def validate_start_id(cls, v):
        if v < 1:
            raise ValueError('Token ids start at 1')
        return v

    @validator('batch_size')
    def validate_batch_size(cls, v):
        """Validate batch size is positive."""
        if v <= 0:
            raise ValueError('Batch size must be positive')
        return v

    @validator('progress_interval')
    def validate_progress_interval(cls, v):
        if v <= 0:
            raise ValueError('Progress interval must be positive')
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default=None, description='Log file path')
    format: Optional[str] = Field(default=None, description='Log format')

    @validator('level')
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


class Config(BaseModel):
    """Main configuration class for the Locker Migration Tool."""

    chain: ChainConfig = Field(..., description='Chain connection settings')
    contracts: ContractsConfig = Field(..., description='Existing contract addresses')
    migration: MigrationConfig = Field(..., description='Migration settings')
    artifacts: ArtifactsConfig = Field(
        default_factory=ArtifactsConfig, description='Compiled contract artifacts'
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )

    class Config:
        """Pydantic configuration."""

        extra = 'forbid'  # Don't allow extra fields

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if not isinstance(config_data, dict):
            raise ValueError(f'Configuration file is not a mapping: {config_path}')

        # Keys are never written to disk; fall back to the environment
        chain = config_data.setdefault('chain', {})
        if isinstance(chain, dict) and not chain.get('private_key'):
            load_dotenv()
            key = os.getenv('DEPLOYER_PRIVATE_KEY')
            if key:
                chain['private_key'] = key

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        # Load .env file if it exists
        load_dotenv()

        total_entities = os.getenv('TOTAL_ENTITIES')

        config_data = {
            'chain': {
                'rpc_url': os.getenv('RPC_URL'),
                'private_key': os.getenv('DEPLOYER_PRIVATE_KEY'),
                'request_timeout': int(os.getenv('RPC_TIMEOUT', 30)),
                'receipt_timeout': int(os.getenv('RECEIPT_TIMEOUT', 300)),
            },
            'contracts': {
                'old_locker': os.getenv('OLD_LOCKER_ADDRESS'),
                'staking': os.getenv('STAKING_ADDRESS'),
                'underlying_token': os.getenv('UNDERLYING_TOKEN_ADDRESS'),
                'proxy_admin': os.getenv('PROXY_ADMIN_ADDRESS'),
            },
            'migration': {
                'total_entities': int(total_entities) if total_entities else None,
                'batch_size': int(os.getenv('MIGRATION_BATCH_SIZE', 100)),
                'dry_run': os.getenv('MIGRATION_DRY_RUN', 'false').lower() == 'true',
                'checkpoint_file': os.getenv('CHECKPOINT_FILE'),
            },
            'artifacts': {
                'path': os.getenv('ARTIFACTS_PATH'),
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO'),
                'file': os.getenv('LOG_FILE'),
            },
        }

        # Remove None values
        config_data = cls._remove_none_values(config_data)

        return cls(**config_data)

    @staticmethod
    def _remove_none_values(data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively remove None values from dictionary."""
        if isinstance(data, dict):
            return {
                k: Config._remove_none_values(v)
                for k, v in data.items()
                if v is not None
            }
        return data

    def to_file(self, config_path: str) -> None:
        """Save configuration to YAML file, leaving out the private key."""
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump()
        data['chain'].pop('private_key', None)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, indent=2, sort_keys=False)

    @staticmethod
    def create_template(output_path: str) -> None:
        """Create a configuration template file."""
        template_config = {
            'chain': {
                'rpc_url': 'https://rpc.example.org',
                'request_timeout': 30,
                'receipt_timeout': 300,
                'poll_interval': 2.0,
                'read_retries': 3,
                'retry_backoff': 2.0,
            },
            'contracts': {
                'old_locker': '0x0000000000000000000000000000000000000001',
                'staking': '0x0000000000000000000000000000000000000002',
                'underlying_token': '0x0000000000000000000000000000000000000003',
                'proxy_admin': '0x0000000000000000000000000000000000000004',
            },
            'artifacts': {
                'path': 'artifacts',
                'locker': 'LockerToken',
                'staking': 'OmnichainStakingToken',
                'token': 'MAHA',
                'proxy': 'TransparentUpgradeableProxy',
                'proxy_admin': 'ProxyAdmin',
                'initializer': 'initialize',
            },
            'migration': {
                'total_entities': 1000,
                'start_id': 1,
                'batch_size': 100,
                'progress_interval': 50,
                'dry_run': False,
                'checkpoint_file': 'migration-checkpoint.json',
            },
            'logging': {
                'level': 'INFO',
                'file': 'migration.log',
            },
        }

        config_file = Path(output_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            f.write('# Set DEPLOYER_PRIVATE_KEY in the environment or a .env file\n')
            yaml.dump(
                template_config, f, default_flow_style=False, indent=2, sort_keys=False
            )
