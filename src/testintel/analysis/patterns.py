"""Behavioral pattern detection over a test's execution history."""

import math
from typing import Optional

from testintel.config import PatternConfig
from testintel.storage.models import (
    Execution,
    ExecutionResult,
    PatternType,
    RecommendedAction,
    TestPattern,
)


class PatternDetector:
    """Classifies a history as flaky, slow and/or always failing.

    The checks are independent, so one history can yield several patterns.
    """

    FLAKY_SUGGESTION = (
        "This test appears flaky. Check for timing issues, external dependencies, or race conditions."
    )
    SLOW_SUGGESTION = (
        "This test is slow. Consider mocking external dependencies or splitting into smaller tests."
    )
    ALWAYS_FAILS_SUGGESTION = "This test consistently fails. It should be fixed or removed."

    def __init__(self, config: Optional[PatternConfig] = None):
        self.config = config or PatternConfig()

    def detect(self, history: list[Execution]) -> list[TestPattern]:
        """Detect patterns in a most-recent-first history.

        Args:
            history: Executions of a single test

        Returns:
            Detected patterns, empty when there is not enough history
        """
        if len(history) < self.config.min_history:
            return []

        patterns = []
        for check in (self._detect_flaky, self._detect_slow, self._detect_always_fails):
            pattern = check(history)
            if pattern is not None:
                patterns.append(pattern)
        return patterns

    def _detect_flaky(self, history: list[Execution]) -> Optional[TestPattern]:
        transitions = 0
        comparable = 0
        for newer, older in zip(history, history[1:]):
            if ExecutionResult.SKIP in (newer.result, older.result):
                continue
            comparable += 1
            if newer.result != older.result:
                transitions += 1

        if comparable == 0 or transitions <= comparable * self.config.flaky_transition_ratio:
            return None

        return TestPattern(
            type=PatternType.FLAKY,
            confidence=min(0.95, transitions / (len(history) * 0.5)),
            evidence=[f"Alternates between pass/fail {transitions} times in {len(history)} runs"],
            suggestion=self.FLAKY_SUGGESTION,
        )

    def _detect_slow(self, history: list[Execution]) -> Optional[TestPattern]:
        durations = sorted((e.duration_ms for e in history), reverse=True)
        average = sum(durations) / len(durations)
        if average <= self.config.slow_threshold_ms:
            return None

        # Tail duration: the 95th percentile, counted from the slowest run.
        tail_index = min(len(durations) - 1, math.ceil(len(durations) * 5 / 100))
        p95 = durations[tail_index]

        return TestPattern(
            type=PatternType.SLOW,
            confidence=min(0.9, average / 10000),
            evidence=[f"Average duration: {average / 1000:.1f}s, P95: {p95 / 1000:.1f}s"],
            suggestion=self.SLOW_SUGGESTION,
        )

    def _detect_always_fails(self, history: list[Execution]) -> Optional[TestPattern]:
        failure_rate = failure_rate_of(history)
        if failure_rate <= self.config.always_fails_ratio:
            return None

        return TestPattern(
            type=PatternType.ALWAYS_FAILS,
            confidence=failure_rate,
            evidence=[f"Fails {failure_rate * 100:.0f}% of the time"],
            suggestion=self.ALWAYS_FAILS_SUGGESTION,
        )


def failure_rate_of(history: list[Execution]) -> float:
    """Share of executions that failed (0.0 for an empty history)."""
    if not history:
        return 0.0
    return sum(1 for e in history if e.failed) / len(history)


def average_duration_of(history: list[Execution]) -> float:
    """Mean duration in milliseconds (0.0 for an empty history)."""
    if not history:
        return 0.0
    return sum(e.duration_ms for e in history) / len(history)


def recommend_action(failure_rate: float, patterns: list[TestPattern]) -> RecommendedAction:
    """Pick the single most useful action for a test.

    Rules are applied in order: mostly failing tests should be fixed, flaky
    ones isolated, slow ones optimized and frequently failing ones skipped.
    """
    if failure_rate > 0.8:
        return RecommendedAction.FIX
    if any(p.type == PatternType.FLAKY and p.confidence > 0.7 for p in patterns):
        return RecommendedAction.ISOLATE
    if any(p.type == PatternType.SLOW and p.confidence > 0.8 for p in patterns):
        return RecommendedAction.OPTIMIZE
    if failure_rate > 0.5:
        return RecommendedAction.SKIP
    return RecommendedAction.NONE
