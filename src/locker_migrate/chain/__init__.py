"""Chain access: RPC client, contract wrappers and proxy deployment."""

from .artifacts import ArtifactStore, ContractArtifact
from .client import MAX_UINT256, ChainClient, TransactionReceipt
from .contracts import LegacyRegistry, NewRegistry, StakingContract, UnderlyingToken
from .deployer import DeployedContract, ProxyDeployer

__all__ = [
    'ArtifactStore',
    'ContractArtifact',
    'MAX_UINT256',
    'ChainClient',
    'TransactionReceipt',
    'LegacyRegistry',
    'NewRegistry',
    'StakingContract',
    'UnderlyingToken',
    'DeployedContract',
    'ProxyDeployer',
]
