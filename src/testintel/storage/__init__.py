"""Storage layer for test history and persisted state."""

from testintel.storage.history import HistoryStore, identity_of
from testintel.storage.models import (
    Execution,
    ExecutionResult,
    Insight,
    PatternType,
    Prediction,
    RecommendedAction,
    TestMetadata,
    TestPattern,
)
from testintel.storage.persistence import PersistenceError, Snapshot, SnapshotStore

__all__ = [
    "HistoryStore",
    "identity_of",
    "Execution",
    "ExecutionResult",
    "Insight",
    "PatternType",
    "Prediction",
    "RecommendedAction",
    "TestMetadata",
    "TestPattern",
    "PersistenceError",
    "Snapshot",
    "SnapshotStore",
]
