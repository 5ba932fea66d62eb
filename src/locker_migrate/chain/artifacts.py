"""Loading of compiled contract artifacts."""

import json
from pathlib import Path
from typing import Any, Dict, List

from loguru import logger
from pydantic import BaseModel, Field

from .exceptions import ArtifactNotFoundError


class ContractArtifact(BaseModel):
    """ABI and creation bytecode of one compiled contract."""

    contract_name: str = Field(..., alias='contractName')
    abi: List[Dict[str, Any]] = Field(default_factory=list)
    bytecode: str = Field(default='0x')

    class Config:
        """Pydantic configuration."""

        populate_by_name = True
        extra = 'ignore'

    @property
    def deployable(self) -> bool:
        """Whether the artifact carries creation bytecode."""
        return self.bytecode not in ('', '0x')


class ArtifactStore:
    """Looks up Hardhat artifacts (``artifacts/**/<Name>.json``) by name."""

    def __init__(self, path: str):
        """Initialize artifact store.

        Args:
            path: Root of the artifacts directory
        """
        self.path = Path(path)
        self._cache: Dict[str, ContractArtifact] = {}

    def load(self, name: str) -> ContractArtifact:
        """Load the artifact for a contract.

        Args:
            name: Contract name

        Returns:
            Parsed artifact

        Raises:
            ArtifactNotFoundError: If no artifact exists for the name
        """
        if name in self._cache:
            return self._cache[name]

        if not self.path.is_dir():
            raise ArtifactNotFoundError(
                f'Artifacts directory not found: {self.path}',
                details={'contract': name},
            )

        matches = [
            p
            for p in sorted(self.path.rglob(f'{name}.json'))
            if 'build-info' not in p.parts
        ]
        if not matches:
            raise ArtifactNotFoundError(
                f'No artifact for contract {name} under {self.path}',
                details={'contract': name},
            )
        if len(matches) > 1:
            logger.warning(
                f'Several artifacts named {name}, using {matches[0]}'
            )

        with open(matches[0], 'r', encoding='utf-8') as f:
            data = json.load(f)

        data.setdefault('contractName', name)
        artifact = ContractArtifact(**data)
        self._cache[name] = artifact
        logger.debug(f'Loaded artifact {name} from {matches[0]}')
        return artifact

    def abi(self, name: str) -> List[Dict[str, Any]]:
        """Return only the ABI of a contract."""
        return self.load(name).abi
