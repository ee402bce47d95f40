"""Tracking of tests that tend to fail together."""

from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from testintel.config import CorrelationConfig
from testintel.storage.models import Execution


class CorrelationTracker:
    """Sparse, directed matrix of co-failure scores.

    ``score(a, b)`` grows each time ``a`` fails shortly after or before ``b``
    failed. Scores are capped at 1.0 and never decay.
    """

    def __init__(self, config: Optional[CorrelationConfig] = None):
        self.config = config or CorrelationConfig()
        self._matrix: dict[str, dict[str, float]] = {}

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.config.window_seconds)

    def observe_failure(
        self,
        test_id: str,
        failed_at: datetime,
        histories: Iterable[tuple[str, list[Execution]]],
    ) -> list[str]:
        """Update scores for a failure of ``test_id`` at ``failed_at``.

        Args:
            test_id: Identity of the test that just failed
            failed_at: When it failed
            histories: (identity, history) pairs of every tracked test

        Returns:
            Identities whose score from ``test_id`` was increased
        """
        window = self.window
        bumped = []
        for other_id, history in histories:
            if other_id == test_id:
                continue
            if any(e.failed and abs(e.timestamp - failed_at) < window for e in history):
                self._bump(test_id, other_id)
                bumped.append(other_id)
        return bumped

    def _bump(self, source: str, target: str) -> None:
        row = self._matrix.setdefault(source, {})
        row[target] = min(1.0, row.get(target, 0.0) + self.config.increment)

    def score(self, source: str, target: str) -> float:
        return self._matrix.get(source, {}).get(target, 0.0)

    def correlated(
        self,
        test_id: str,
        name_of: Callable[[str], str] = lambda test_id: test_id,
    ) -> list[str]:
        """Names of the tests most strongly correlated with ``test_id``.

        Args:
            test_id: Identity to look up
            name_of: Resolves an identity to a readable test name

        Returns:
            Up to ``max_results`` names, strongest first
        """
        row = self._matrix.get(test_id)
        if not row:
            return []

        ranked = sorted(
            ((other, score) for other, score in row.items() if score > self.config.report_threshold),
            key=lambda item: item[1],
            reverse=True,
        )
        return [name_of(other) for other, _ in ranked[: self.config.max_results]]

    def strongly_correlated(self, test_id: str) -> dict[str, float]:
        """Identities whose score from ``test_id`` exceeds the coupling threshold."""
        return {
            other: score
            for other, score in self._matrix.get(test_id, {}).items()
            if score > self.config.strong_threshold
        }

    def coupled_groups(self, min_size: int = 3) -> list[list[str]]:
        """Groups of a test plus the tests strongly correlated with it.

        Only sources with at least ``min_size`` strongly coupled tests form a
        group.
        """
        groups = []
        for source in self._matrix:
            coupled = self.strongly_correlated(source)
            if len(coupled) >= min_size:
                groups.append([source, *sorted(coupled, key=coupled.get, reverse=True)])
        return groups

    def to_dict(self) -> dict[str, dict[str, float]]:
        """Copy of the full matrix."""
        return {source: dict(row) for source, row in self._matrix.items()}

    def load(self, matrix: dict[str, dict[str, float]]) -> None:
        self._matrix = {source: dict(row) for source, row in matrix.items() if row}

    def clear(self) -> None:
        self._matrix.clear()
