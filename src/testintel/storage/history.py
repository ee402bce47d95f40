"""Bounded per-test execution history keyed by a stable test identity."""

import hashlib
from typing import Iterable, Iterator, Optional

from testintel.storage.models import Execution, TestMetadata


def identity_of(file_name: str, test_name: str) -> str:
    """Return the stable identity of a test.

    The same (file, test) pair always maps to the same identity.
    """
    return hashlib.md5(f"{file_name}::{test_name}".encode("utf-8")).hexdigest()


class HistoryStore:
    """In-memory store of test histories and metadata.

    Each history is ordered by timestamp, most recent first, and never grows
    beyond ``max_history_per_test``. When a history is full, the execution
    with the oldest timestamp is dropped.
    """

    def __init__(self, max_history_per_test: int = 100):
        if max_history_per_test < 1:
            raise ValueError("max_history_per_test must be at least 1")
        self.max_history_per_test = max_history_per_test
        self._history: dict[str, list[Execution]] = {}
        self._metadata: dict[str, TestMetadata] = {}

    def record(self, execution: Execution, file_name: str, test_name: str) -> None:
        """Insert an execution into its test's history and refresh metadata.

        Executions arriving out of order are placed by timestamp. Among equal
        timestamps the latest recorded comes first.
        """
        history = self._history.setdefault(execution.test_id, [])
        position = next(
            (i for i, e in enumerate(history) if e.timestamp <= execution.timestamp),
            len(history),
        )
        history.insert(position, execution)
        del history[self.max_history_per_test:]

        metadata = self._metadata.get(execution.test_id)
        if metadata is None:
            metadata = TestMetadata(
                test_id=execution.test_id,
                file_name=file_name,
                test_name=test_name,
            )
            self._metadata[execution.test_id] = metadata
        if metadata.timestamp is None or execution.timestamp >= metadata.timestamp:
            metadata.duration_ms = execution.duration_ms
            metadata.timestamp = execution.timestamp

    def history_of(self, test_id: str) -> list[Execution]:
        """Return a copy of a test's history, most recent first."""
        return list(self._history.get(test_id, ()))

    def metadata_of(self, test_id: str) -> Optional[TestMetadata]:
        """Return a copy of a test's metadata, if known."""
        metadata = self._metadata.get(test_id)
        if metadata is None:
            return None
        return TestMetadata(
            test_id=metadata.test_id,
            file_name=metadata.file_name,
            test_name=metadata.test_name,
            duration_ms=metadata.duration_ms,
            timestamp=metadata.timestamp,
        )

    def name_of(self, test_id: str) -> str:
        """Return the human-readable test name, or the identity if unknown."""
        metadata = self._metadata.get(test_id)
        return metadata.test_name if metadata else test_id

    def items(self) -> Iterator[tuple[str, list[Execution]]]:
        """Iterate over (identity, history copy) pairs."""
        for test_id in list(self._history):
            yield test_id, self.history_of(test_id)

    def all_metadata(self) -> list[TestMetadata]:
        return [self.metadata_of(test_id) for test_id in list(self._metadata)]

    def total_executions(self) -> int:
        return sum(len(h) for h in self._history.values())

    def load(
        self,
        histories: dict[str, Iterable[Execution]],
        metadata: Iterable[TestMetadata],
    ) -> None:
        """Replace all state with previously persisted histories and metadata.

        Each history is re-sorted newest first and cut to the most recent
        ``max_history_per_test`` executions.
        """
        self._history = {}
        for test_id, executions in histories.items():
            ordered = sorted(executions, key=lambda e: e.timestamp, reverse=True)
            if ordered:
                self._history[test_id] = ordered[: self.max_history_per_test]
        self._metadata = {m.test_id: m for m in metadata}

    def clear(self) -> None:
        self._history.clear()
        self._metadata.clear()

    def __len__(self) -> int:
        return len(self._history)

    def __contains__(self, test_id: object) -> bool:
        return test_id in self._history
