"""Per-test insights and workspace dashboards."""

from datetime import datetime, timedelta
from typing import Optional

from testintel.analysis.correlation import CorrelationTracker
from testintel.analysis.patterns import (
    PatternDetector,
    average_duration_of,
    failure_rate_of,
    recommend_action,
)
from testintel.config import EngineConfig
from testintel.storage.history import HistoryStore
from testintel.storage.models import (
    DailyTrend,
    Dashboard,
    ExecutionResult,
    Insight,
    PatternType,
    Suggestion,
    TestPattern,
    local_naive,
)

TREND_DAYS = 7
LAST_FAILURES = 5


class InsightsAggregator:
    """Combines history, patterns and correlations into read-only views."""

    def __init__(
        self,
        store: HistoryStore,
        detector: PatternDetector,
        tracker: CorrelationTracker,
        config: Optional[EngineConfig] = None,
    ):
        self.store = store
        self.detector = detector
        self.tracker = tracker
        self.config = config or EngineConfig()

    def insight_for(self, test_id: str) -> Optional[Insight]:
        """Build the insight for one test.

        Returns:
            The insight, or None when the test is unknown or has too little
            history to say anything useful
        """
        history = self.store.history_of(test_id)
        if len(history) < self.config.min_history_for_insights:
            return None

        metadata = self.store.metadata_of(test_id)
        patterns = self.detector.detect(history)
        cascading = self._cascading_pattern(test_id)
        if cascading is not None:
            patterns.append(cascading)

        failure_rate = failure_rate_of(history)
        return Insight(
            test_id=test_id,
            test_name=metadata.test_name if metadata else test_id,
            file_name=metadata.file_name if metadata else "",
            patterns=patterns,
            average_duration=average_duration_of(history),
            failure_rate=failure_rate,
            last_failures=[e for e in history if e.failed][:LAST_FAILURES],
            correlated_tests=self.tracker.correlated(test_id, self.store.name_of),
            recommended_action=recommend_action(failure_rate, patterns),
        )

    def _cascading_pattern(self, test_id: str) -> Optional[TestPattern]:
        coupled = self.tracker.strongly_correlated(test_id)
        if len(coupled) <= 2:
            return None

        names = [self.store.name_of(other) for other in coupled]
        return TestPattern(
            type=PatternType.CASCADING_FAILURE,
            confidence=sum(coupled.values()) / len(coupled),
            evidence=[f"Fails together with {len(coupled)} other tests: {', '.join(names[:5])}"],
            suggestion="This test fails together with others. Look for shared state or a common broken dependency.",
        )

    def all_insights(self) -> list[Insight]:
        insights = []
        for metadata in self.store.all_metadata():
            insight = self.insight_for(metadata.test_id)
            if insight is not None:
                insights.append(insight)
        return insights

    def dashboard(self, now: Optional[datetime] = None, limit: int = 10) -> Dashboard:
        """Summarize everything the engine has learned.

        Args:
            now: End of the most recent trend bucket (default: current time)
            limit: Number of slowest and flakiest tests to include

        Returns:
            Dashboard with totals, rankings and a 7-day pass/fail trend
        """
        now = local_naive(now) if now is not None else datetime.now()

        total_executions = 0
        total_failures = 0
        slowest: list[tuple[str, float]] = []
        flakiest: list[tuple[str, float]] = []

        for test_id, history in self.store.items():
            if not history:
                continue
            total_executions += len(history)
            total_failures += sum(1 for e in history if e.failed)

            name = self.store.name_of(test_id)
            slowest.append((name, average_duration_of(history)))
            for pattern in self.detector.detect(history):
                if pattern.type == PatternType.FLAKY:
                    flakiest.append((name, pattern.confidence))

        slowest.sort(key=lambda item: item[1], reverse=True)
        flakiest.sort(key=lambda item: item[1], reverse=True)

        return Dashboard(
            total_tests=len(self.store),
            total_executions=total_executions,
            overall_failure_rate=total_failures / total_executions if total_executions else 0.0,
            slowest_tests=slowest[:limit],
            flakiest_tests=flakiest[:limit],
            daily_trend=self.daily_trend(now),
        )

    def daily_trend(self, now: datetime) -> list[DailyTrend]:
        """Pass/fail counts in day-wide buckets ending at ``now``, oldest first."""
        day = timedelta(days=1)
        buckets = []
        for i in range(TREND_DAYS - 1, -1, -1):
            day_end = now - i * day
            buckets.append((now - (i + 1) * day, day_end, DailyTrend(date=day_end.strftime("%Y-%m-%d"))))

        for _, history in self.store.items():
            for execution in history:
                for start, end, trend in buckets:
                    if start <= execution.timestamp < end:
                        if execution.result == ExecutionResult.PASS:
                            trend.passed += 1
                        elif execution.result == ExecutionResult.FAIL:
                            trend.failed += 1
                        break

        return [trend for _, _, trend in buckets]

    def optimization_suggestions(self) -> list[Suggestion]:
        """Workspace-level suggestions for performance, reliability and coupling."""
        suggestions = []

        slow_tests = []
        flaky_tests = []
        for test_id, history in self.store.items():
            if not history:
                continue
            average = average_duration_of(history)
            if average > self.detector.config.slow_threshold_ms:
                slow_tests.append((test_id, average))
            if any(
                p.type == PatternType.FLAKY and p.confidence > 0.7
                for p in self.detector.detect(history)
            ):
                flaky_tests.append(test_id)

        if slow_tests:
            slow_tests.sort(key=lambda item: item[1], reverse=True)
            threshold_s = self.detector.config.slow_threshold_ms / 1000
            suggestions.append(
                Suggestion(
                    category="performance",
                    title="Optimize Slow Tests",
                    description=(
                        f"{len(slow_tests)} tests take over {threshold_s:g} seconds on average. "
                        f"The slowest takes {slow_tests[0][1] / 1000:.1f}s."
                    ),
                    impact="high",
                    tests=[self.store.name_of(test_id) for test_id, _ in slow_tests[:5]],
                )
            )

        if flaky_tests:
            suggestions.append(
                Suggestion(
                    category="reliability",
                    title="Fix Flaky Tests",
                    description=f"{len(flaky_tests)} tests show flaky behavior, causing unreliable CI pipelines.",
                    impact="high",
                    tests=[self.store.name_of(test_id) for test_id in flaky_tests[:5]],
                )
            )

        groups = self.tracker.coupled_groups()
        if groups:
            suggestions.append(
                Suggestion(
                    category="architecture",
                    title="Decouple Test Dependencies",
                    description=f"{len(groups)} groups of tests fail together, indicating tight coupling.",
                    impact="medium",
                    tests=[self.store.name_of(test_id) for test_id in groups[0][:5]],
                )
            )

        return suggestions
