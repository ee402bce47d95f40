"""Test intelligence engine: learns from every test run of a workspace."""

import json
import logging
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from testintel.analysis.correlation import CorrelationTracker
from testintel.analysis.patterns import PatternDetector
from testintel.config import IntelligenceConfig
from testintel.git.context import GitContext
from testintel.insights.aggregator import InsightsAggregator
from testintel.risk.predictor import OutcomePredictor
from testintel.storage.history import HistoryStore, identity_of
from testintel.storage.models import (
    Dashboard,
    Execution,
    ExecutionResult,
    Insight,
    Prediction,
    Suggestion,
    local_naive,
)
from testintel.storage.persistence import PersistenceError, Snapshot, SnapshotStore

logger = logging.getLogger(__name__)


class TestIntelligenceEngine:
    """Single-owner learning engine for one workspace.

    ``record`` is the only mutator and is serialized with a lock. Queries read
    copies of the latest committed state. State is loaded from ``data_path`` on
    construction and flushed after every recorded execution when autosave is
    on. Persistence problems are logged, never raised.
    """

    __test__ = False

    def __init__(
        self,
        data_path: Path | str,
        config: Optional[IntelligenceConfig] = None,
        git: Optional[GitContext] = None,
        autosave: Optional[bool] = None,
    ):
        """Initialize the engine and load any persisted state.

        Args:
            data_path: JSON state file for this workspace
            config: Engine configuration (default: built-in defaults)
            git: Source of the current commit for recorded executions
            autosave: Override ``config.storage.autosave``
        """
        self.config = config or IntelligenceConfig()
        self.autosave = self.config.storage.autosave if autosave is None else autosave
        self.git = git

        self.persistence = SnapshotStore(data_path)
        self.store = HistoryStore(self.config.engine.max_history_per_test)
        self.detector = PatternDetector(self.config.patterns)
        self.tracker = CorrelationTracker(self.config.correlation)
        self.predictor = OutcomePredictor(self.store, self.config.engine)
        self.aggregator = InsightsAggregator(
            self.store, self.detector, self.tracker, self.config.engine
        )

        self._lock = threading.Lock()
        self._dirty = False
        self._load()

    @classmethod
    def for_workspace(
        cls,
        workspace_root: Path | str,
        config: Optional[IntelligenceConfig] = None,
    ) -> "TestIntelligenceEngine":
        """Create an engine storing its state inside ``workspace_root``."""
        config = config or IntelligenceConfig()
        paths = config.get_absolute_paths(workspace_root)
        git = GitContext(workspace_root) if config.git.enabled else None
        return cls(paths["state_file"], config=config, git=git)

    @property
    def data_path(self) -> Path:
        return self.persistence.path

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def _load(self) -> None:
        snapshot = self.persistence.load()
        self.store.load(snapshot.history, snapshot.metadata)
        self.tracker.load(snapshot.correlations)

    def record(
        self,
        test_name: str,
        file_name: str,
        result: ExecutionResult | str,
        duration_ms: float,
        error: Optional[str] = None,
        changed_files: Optional[Iterable[str]] = None,
        *,
        error_stack: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> Execution:
        """Learn from one finished test.

        Args:
            test_name: Name of the test
            file_name: File the test lives in
            result: 'pass', 'fail' or 'skip'
            duration_ms: How long the test took
            error: Error message of a failure
            changed_files: Files changed at the time of the run
            error_stack: Stack trace of a failure
            timestamp: When the test finished (default: now)

        Returns:
            The recorded execution

        Raises:
            ValueError: If ``result`` is not a known outcome
        """
        result = ExecutionResult(result)
        if duration_ms < 0:
            logger.warning("Negative duration %s for %s::%s, recording 0", duration_ms, file_name, test_name)
            duration_ms = 0

        test_id = identity_of(file_name, test_name)
        execution = Execution(
            id=uuid.uuid4().hex,
            test_id=test_id,
            result=result,
            duration_ms=float(duration_ms),
            timestamp=local_naive(timestamp) if timestamp else datetime.now(),
            error_message=error,
            error_stack=error_stack,
            git_commit=self.git.current_commit() if self.git else None,
            changed_files=tuple(changed_files or ()),
        )

        with self._lock:
            self.store.record(execution, file_name, test_name)
            if execution.failed:
                self.tracker.observe_failure(test_id, execution.timestamp, self.store.items())
            self._dirty = True
            if self.autosave:
                self._flush()

        return execution

    def save(self) -> bool:
        """Flush the current state to disk.

        Returns:
            True if the state was written
        """
        with self._lock:
            return self._flush()

    def _flush(self) -> bool:
        try:
            self.persistence.save(self.snapshot())
        except PersistenceError as e:
            # Stay dirty so the next mutation retries.
            logger.warning("Failed to save test intelligence data: %s", e)
            return False
        self._dirty = False
        return True

    def close(self) -> None:
        """Flush unsaved state and release the git repository."""
        with self._lock:
            if self._dirty:
                self._flush()
        if self.git is not None:
            self.git.close()

    def __enter__(self) -> "TestIntelligenceEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def snapshot(self) -> Snapshot:
        """Durable state as a detached snapshot."""
        return Snapshot(
            history=dict(self.store.items()),
            metadata=self.store.all_metadata(),
            correlations=self.tracker.to_dict(),
        )

    def identity_of(self, test_name: str, file_name: str) -> str:
        return identity_of(file_name, test_name)

    def history_of(self, test_name: str, file_name: str) -> list[Execution]:
        """Recorded executions of a test, most recent first."""
        return self.store.history_of(identity_of(file_name, test_name))

    def get_insights(self, test_name: str, file_name: str) -> Optional[Insight]:
        """Insight for one test, or None if there is not enough history."""
        return self.aggregator.insight_for(identity_of(file_name, test_name))

    def correlated_tests(self, test_name: str, file_name: str) -> list[str]:
        """Names of tests that tend to fail together with this one."""
        return self.tracker.correlated(identity_of(file_name, test_name), self.store.name_of)

    def predict(
        self,
        candidates: Iterable[tuple[str, str]],
        changed_files: Iterable[str] = (),
    ) -> list[Prediction]:
        """Predict outcomes for (test_name, file_name) candidates, likely failures first."""
        return self.predictor.predict(candidates, changed_files)

    def get_dashboard(self, now: Optional[datetime] = None) -> Dashboard:
        return self.aggregator.dashboard(now)

    def optimization_suggestions(self) -> list[Suggestion]:
        return self.aggregator.optimization_suggestions()

    def clear_history(self) -> None:
        """Forget everything and remove the persisted state."""
        with self._lock:
            self.store.clear()
            self.tracker.clear()
            try:
                self.persistence.delete()
            except PersistenceError as e:
                logger.warning("Failed to clear test intelligence data: %s", e)
                self._dirty = True
                return
            self._dirty = False
        logger.info("Test intelligence data cleared")

    def export(self) -> dict:
        """JSON-serializable snapshot of state and insights for offline analysis."""
        return {
            "export_date": datetime.now().isoformat(),
            "total_tests": len(self.store),
            "insights": [i.to_dict() for i in self.aggregator.all_insights()],
            "state": SnapshotStore.serialize(self.snapshot()),
        }

    def export_insights(self, path: Path | str | None = None) -> Path:
        """Write ``export()`` to a JSON file.

        Args:
            path: Output file (default: timestamped file next to the state file)

        Returns:
            Path of the written file
        """
        if path is None:
            stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
            path = self.data_path.parent / f"test-insights-{stamp}.json"
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(self.export(), f, indent=2)

        return path
