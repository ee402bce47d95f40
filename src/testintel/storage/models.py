"""Data models for test executions, patterns and derived insights."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


def local_naive(timestamp: datetime) -> datetime:
    """Convert an offset-aware timestamp to naive local time.

    All stored timestamps are naive local time so they can be compared with
    ``datetime.now()``. Naive input is returned unchanged.
    """
    if timestamp.tzinfo is None:
        return timestamp
    return timestamp.astimezone().replace(tzinfo=None)


class ExecutionResult(str, Enum):
    """Outcome of a single test execution."""

    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"


class PatternType(str, Enum):
    """Behavioral classification of a test's history."""

    FLAKY = "flaky"
    SLOW = "slow"
    ALWAYS_FAILS = "always_fails"
    CASCADING_FAILURE = "cascading_failure"


class RecommendedAction(str, Enum):
    """What to do about a test."""

    FIX = "fix"
    SKIP = "skip"
    ISOLATE = "isolate"
    OPTIMIZE = "optimize"
    NONE = "none"


@dataclass(frozen=True)
class Execution:
    """One recorded outcome of a test. Immutable once recorded."""

    id: str
    test_id: str
    result: ExecutionResult
    duration_ms: float
    timestamp: datetime
    error_message: Optional[str] = None
    error_stack: Optional[str] = None
    git_commit: Optional[str] = None
    changed_files: tuple[str, ...] = ()

    @property
    def failed(self) -> bool:
        return self.result == ExecutionResult.FAIL

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "test_id": self.test_id,
            "result": self.result.value,
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp.isoformat(),
            "error_message": self.error_message,
            "error_stack": self.error_stack,
            "git_commit": self.git_commit,
            "changed_files": list(self.changed_files),
        }


@dataclass
class TestMetadata:
    """Denormalized per-test cache of names and last-seen values."""

    __test__ = False

    test_id: str
    file_name: str
    test_name: str
    duration_ms: float = 0.0
    timestamp: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "test_id": self.test_id,
            "file_name": self.file_name,
            "test_name": self.test_name,
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class TestPattern:
    """A detected behavioral pattern with its confidence."""

    __test__ = False

    type: PatternType
    confidence: float
    evidence: list[str] = field(default_factory=list)
    suggestion: str = ""

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "confidence": self.confidence,
            "evidence": list(self.evidence),
            "suggestion": self.suggestion,
        }


@dataclass
class Prediction:
    """Predicted outcome of a test that has not run yet."""

    test_id: str
    test_name: str
    file_name: str
    will_pass: bool
    confidence: float
    reasoning: str
    suggested_order: float

    def to_dict(self) -> dict:
        return {
            "test_id": self.test_id,
            "test_name": self.test_name,
            "file_name": self.file_name,
            "will_pass": self.will_pass,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "suggested_order": self.suggested_order,
        }


@dataclass
class Insight:
    """Aggregate view of a single test."""

    test_id: str
    test_name: str
    file_name: str
    patterns: list[TestPattern] = field(default_factory=list)
    average_duration: float = 0.0
    failure_rate: float = 0.0
    last_failures: list[Execution] = field(default_factory=list)
    correlated_tests: list[str] = field(default_factory=list)
    recommended_action: RecommendedAction = RecommendedAction.NONE

    def has_pattern(self, pattern_type: PatternType) -> bool:
        return any(p.type == pattern_type for p in self.patterns)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "test_id": self.test_id,
            "test_name": self.test_name,
            "file_name": self.file_name,
            "patterns": [p.to_dict() for p in self.patterns],
            "average_duration": self.average_duration,
            "failure_rate": self.failure_rate,
            "last_failures": [e.to_dict() for e in self.last_failures],
            "correlated_tests": list(self.correlated_tests),
            "recommended_action": self.recommended_action.value,
        }


@dataclass
class DailyTrend:
    """Pass/fail counts for one day-wide bucket."""

    date: str
    passed: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {"date": self.date, "passed": self.passed, "failed": self.failed}


@dataclass
class Dashboard:
    """Workspace-wide summary of everything the engine has learned."""

    total_tests: int = 0
    total_executions: int = 0
    overall_failure_rate: float = 0.0
    slowest_tests: list[tuple[str, float]] = field(default_factory=list)
    flakiest_tests: list[tuple[str, float]] = field(default_factory=list)
    daily_trend: list[DailyTrend] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total_tests": self.total_tests,
            "total_executions": self.total_executions,
            "overall_failure_rate": self.overall_failure_rate,
            "slowest_tests": [
                {"name": name, "duration": duration} for name, duration in self.slowest_tests
            ],
            "flakiest_tests": [
                {"name": name, "flakiness": flakiness} for name, flakiness in self.flakiest_tests
            ],
            "daily_trend": [t.to_dict() for t in self.daily_trend],
        }


@dataclass
class Suggestion:
    """A workspace-level optimization suggestion."""

    category: str  # 'performance', 'reliability', 'architecture'
    title: str
    description: str
    impact: str  # 'high', 'medium', 'low'
    tests: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "impact": self.impact,
            "tests": list(self.tests),
        }
