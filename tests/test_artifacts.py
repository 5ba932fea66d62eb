"""Tests for artifact loading."""

import json

import pytest

from locker_migrate.chain.artifacts import ArtifactStore
from locker_migrate.chain.exceptions import ArtifactNotFoundError

ABI = [{'type': 'function', 'name': 'underlying', 'inputs': [], 'outputs': []}]


class TestArtifactStore:
    """Test ArtifactStore."""

    def test_load_hardhat_artifact(self, tmp_path):
        """Test an artifact nested under its source file is found."""
        target = tmp_path / 'contracts' / 'locker' / 'LockerToken.sol'
        target.mkdir(parents=True)
        (target / 'LockerToken.json').write_text(
            json.dumps(
                {
                    '_format': 'hh-sol-artifact-1',
                    'contractName': 'LockerToken',
                    'abi': ABI,
                    'bytecode': '0x6080',
                    'linkReferences': {},
                }
            )
        )
        (tmp_path / 'build-info').mkdir()
        (tmp_path / 'build-info' / 'LockerToken.json').write_text('{}')

        store = ArtifactStore(str(tmp_path))
        artifact = store.load('LockerToken')

        assert artifact.contract_name == 'LockerToken'
        assert artifact.abi == ABI
        assert artifact.deployable
        assert store.abi('LockerToken') == ABI

    def test_artifact_is_cached(self, tmp_path):
        """Test a second load does not read the file again."""
        path = tmp_path / 'MAHA.json'
        path.write_text(json.dumps({'abi': ABI, 'bytecode': '0x'}))
        store = ArtifactStore(str(tmp_path))

        first = store.load('MAHA')
        path.unlink()

        assert store.load('MAHA') is first
        assert first.contract_name == 'MAHA'
        assert not first.deployable

    def test_missing_artifact(self, tmp_path):
        """Test an unknown contract name."""
        with pytest.raises(ArtifactNotFoundError) as exc_info:
            ArtifactStore(str(tmp_path)).load('ProxyAdmin')

        assert exc_info.value.details == {'contract': 'ProxyAdmin'}

    def test_missing_directory(self, tmp_path):
        """Test an artifacts path that does not exist."""
        with pytest.raises(ArtifactNotFoundError, match='directory not found'):
            ArtifactStore(str(tmp_path / 'nope')).load('ProxyAdmin')
