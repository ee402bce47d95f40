"""JSON snapshot persistence for learned test intelligence."""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from testintel.storage.models import Execution, ExecutionResult, TestMetadata, local_naive

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when the state snapshot cannot be written."""

    pass


class ExecutionRecord(BaseModel):
    """Persisted shape of an execution."""

    id: str
    test_id: str
    result: ExecutionResult
    duration_ms: float = Field(ge=0)
    timestamp: datetime
    error_message: Optional[str] = None
    error_stack: Optional[str] = None
    git_commit: Optional[str] = None
    changed_files: list[str] = Field(default_factory=list)

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return local_naive(v)

    def to_execution(self) -> Execution:
        return Execution(
            id=self.id,
            test_id=self.test_id,
            result=self.result,
            duration_ms=self.duration_ms,
            timestamp=self.timestamp,
            error_message=self.error_message,
            error_stack=self.error_stack,
            git_commit=self.git_commit,
            changed_files=tuple(self.changed_files),
        )


class MetadataRecord(BaseModel):
    """Persisted shape of test metadata."""

    test_id: str
    file_name: str
    test_name: str
    duration_ms: float = 0.0
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        return local_naive(v) if v is not None else None

    def to_metadata(self) -> TestMetadata:
        return TestMetadata(
            test_id=self.test_id,
            file_name=self.file_name,
            test_name=self.test_name,
            duration_ms=self.duration_ms,
            timestamp=self.timestamp,
        )


class StateDocument(BaseModel):
    """The complete persisted document."""

    version: int
    saved_at: Optional[datetime] = None
    history: dict[str, list[ExecutionRecord]] = Field(default_factory=dict)
    metadata: dict[str, MetadataRecord] = Field(default_factory=dict)
    correlations: dict[str, dict[str, float]] = Field(default_factory=dict)


@dataclass
class Snapshot:
    """Durable engine state in domain form."""

    history: dict[str, list[Execution]] = field(default_factory=dict)
    metadata: list[TestMetadata] = field(default_factory=list)
    correlations: dict[str, dict[str, float]] = field(default_factory=dict)


class SnapshotStore:
    """Reads and writes the engine state as a single versioned JSON document."""

    FORMAT_VERSION = 1

    def __init__(self, path: Path | str):
        """Initialize the store.

        Args:
            path: Location of the JSON state file
        """
        self.path = Path(path)

    def load(self) -> Snapshot:
        """Load the persisted state.

        A missing, unreadable, malformed or incompatible file yields an empty
        snapshot. Nothing is raised.
        """
        if not self.path.exists():
            logger.info("No test intelligence data at %s, starting fresh", self.path)
            return Snapshot()

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Failed to read test intelligence data from %s: %s", self.path, e)
            return Snapshot()

        if not isinstance(raw, dict) or raw.get("version") != self.FORMAT_VERSION:
            version = raw.get("version") if isinstance(raw, dict) else None
            logger.warning(
                "Discarding test intelligence data at %s: unsupported format version %r",
                self.path,
                version,
            )
            return Snapshot()

        try:
            document = StateDocument.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "Discarding corrupted test intelligence data at %s: %d validation errors",
                self.path,
                e.error_count(),
            )
            return Snapshot()

        snapshot = Snapshot(
            history={
                test_id: [record.to_execution() for record in records]
                for test_id, records in document.history.items()
            },
            metadata=[record.to_metadata() for record in document.metadata.values()],
            correlations={
                source: {target: min(1.0, max(0.0, score)) for target, score in targets.items()}
                for source, targets in document.correlations.items()
            },
        )
        logger.info("Loaded test intelligence data: %d tests tracked", len(snapshot.history))
        return snapshot

    def save(self, snapshot: Snapshot) -> None:
        """Write the snapshot, replacing the previous file atomically.

        Raises:
            PersistenceError: If the file cannot be written
        """
        data = self.serialize(snapshot)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to write {self.path}: {e}") from e

        logger.debug("Saved test intelligence data for %d tests to %s", len(snapshot.history), self.path)

    def delete(self) -> None:
        """Remove the state file if it exists.

        Raises:
            PersistenceError: If the file exists but cannot be removed
        """
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to remove {self.path}: {e}") from e

    @classmethod
    def serialize(cls, snapshot: Snapshot) -> dict:
        """Build the JSON-ready document for a snapshot."""
        return {
            "version": cls.FORMAT_VERSION,
            "saved_at": datetime.now().isoformat(),
            "history": {
                test_id: [e.to_dict() for e in executions]
                for test_id, executions in snapshot.history.items()
            },
            "metadata": {m.test_id: m.to_dict() for m in snapshot.metadata},
            "correlations": {
                source: dict(targets) for source, targets in snapshot.correlations.items()
            },
        }
