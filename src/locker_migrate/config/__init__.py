"""Configuration for the Locker Migration Tool."""

from .config import (
    ArtifactsConfig,
    ChainConfig,
    Config,
    ContractsConfig,
    LoggingConfig,
    MigrationConfig,
)

__all__ = [
    'ArtifactsConfig',
    'ChainConfig',
    'Config',
    'ContractsConfig',
    'LoggingConfig',
    'MigrationConfig',
]
