"""Checkpoint persistence for resumable migrations."""

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from ..chain.exceptions import LockerMigrationError
from ..models.migration import MigrationBatch

CHECKPOINT_SCHEMA_VERSION = 1


class Stage(str, Enum):
    """Run stages that must not be repeated on resume."""

    DEPLOYED = 'deployed'
    UPGRADED = 'upgraded'
    REPOINTED = 'repointed'
    APPROVED = 'approved'
    DONE = 'done'


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PendingBatch(BaseModel):
    """A batch transaction that was sent but whose receipt was not seen."""

    batch_index: int
    tx_hash: str
    entity_ids: List[int] = Field(default_factory=list)


class Checkpoint(BaseModel):
    """Serializable snapshot of migration progress.

    Durations are recomputed from a new block timestamp when a run resumes,
    so progress is keyed by imported token ids rather than batch positions.
    """

    schema_version: int = Field(default=CHECKPOINT_SCHEMA_VERSION)
    new_registry: Optional[str] = Field(default=None, description='New locker proxy')
    completed_stages: List[Stage] = Field(default_factory=list)
    confirmed_batches: int = Field(default=0, description='Batches mined so far')
    migrated_entity_ids: List[int] = Field(default_factory=list)
    pending_batch: Optional[PendingBatch] = Field(
        default=None, description='Sent batch awaiting its receipt'
    )
    started_at: Optional[str] = None
    last_updated: Optional[str] = None

    def has(self, stage: Stage) -> bool:
        return stage in self.completed_stages

    def mark(self, stage: Stage) -> None:
        if stage not in self.completed_stages:
            self.completed_stages.append(stage)

    def mark_pending(self, batch: MigrationBatch, tx_hash: str) -> None:
        self.pending_batch = PendingBatch(
            batch_index=batch.index, tx_hash=tx_hash, entity_ids=batch.entity_ids
        )

    def record_batch(self, batch: MigrationBatch) -> None:
        self.confirmed_batches += 1
        self.migrated_entity_ids.extend(batch.entity_ids)
        self.pending_batch = None

    def settle_pending(self, mined: bool) -> None:
        """Resolve the pending batch once its receipt is known.

        A mined batch counts as migrated; a reverted one is dropped so its
        tokens are imported again.
        """
        if self.pending_batch is None:
            return
        if mined:
            self.confirmed_batches += 1
            self.migrated_entity_ids.extend(self.pending_batch.entity_ids)
        self.pending_batch = None


class CheckpointStore:
    """Reads and atomically writes a checkpoint file.

    Without a path the store keeps the checkpoint in memory only.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self.logger = logger.bind(component='CheckpointStore')

    @property
    def enabled(self) -> bool:
        return self.path is not None

    def load(self) -> Checkpoint:
        """Load the checkpoint, or start a fresh one if there is no file.

        Raises:
            LockerMigrationError: If the file exists but cannot be used
        """
        if self.path is None or not self.path.exists():
            return Checkpoint(started_at=_now_iso())

        try:
            raw = json.loads(self.path.read_text(encoding='utf-8'))
        except (json.JSONDecodeError, OSError) as e:
            raise LockerMigrationError(
                f'Failed to read checkpoint {self.path}: {e}'
            ) from e

        if not isinstance(raw, dict):
            raise LockerMigrationError(
                f'Checkpoint file {self.path} has invalid format'
            )

        version = raw.get('schema_version', 0)
        if version != CHECKPOINT_SCHEMA_VERSION:
            raise LockerMigrationError(
                f'Checkpoint schema version {version} != {CHECKPOINT_SCHEMA_VERSION}'
            )

        checkpoint = Checkpoint(**raw)
        self.logger.info(
            f'Resuming from {self.path}: {checkpoint.confirmed_batches} batches, '
            f'{len(checkpoint.migrated_entity_ids)} tokens already migrated'
        )
        return checkpoint

    def save(self, checkpoint: Checkpoint) -> None:
        """Write checkpoint to disk (write .tmp + rename)."""
        if self.path is None:
            return

        checkpoint.last_updated = _now_iso()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix('.tmp')
        tmp.write_text(checkpoint.model_dump_json(indent=2) + '\n', encoding='utf-8')
        tmp.replace(self.path)
