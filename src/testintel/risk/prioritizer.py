"""Execution ordering based on outcome predictions."""

from dataclasses import dataclass
from typing import Optional

from testintel.storage.models import Prediction

CATEGORIES = ("likely_fail", "uncertain", "likely_pass")


@dataclass
class PrioritizedTest:
    """A test with its place in the suggested run order."""

    name: str
    file_path: str
    confidence: float
    priority_rank: int
    category: str  # one of CATEGORIES
    reasoning: str = ""


class TestPrioritizer:
    """Turns predictions into a ranked, categorized run order."""

    __test__ = False

    PASS_CONFIDENCE_THRESHOLD = 0.5

    def __init__(self, pass_confidence_threshold: Optional[float] = None):
        """Initialize the prioritizer.

        Args:
            pass_confidence_threshold: Confidence needed before a predicted
                pass counts as likely (default: 0.5)
        """
        if pass_confidence_threshold is None:
            pass_confidence_threshold = self.PASS_CONFIDENCE_THRESHOLD
        self.pass_confidence_threshold = pass_confidence_threshold

    def prioritize(self, predictions: list[Prediction]) -> list[PrioritizedTest]:
        """Rank tests by suggested order, lowest key first.

        Args:
            predictions: Predictions in any order

        Returns:
            List of PrioritizedTest, rank 1 runs first
        """
        ordered = sorted(predictions, key=lambda p: p.suggested_order)
        return [
            PrioritizedTest(
                name=p.test_name,
                file_path=p.file_name,
                confidence=p.confidence,
                priority_rank=rank,
                category=self._categorize(p),
                reasoning=p.reasoning,
            )
            for rank, p in enumerate(ordered, start=1)
        ]

    def _categorize(self, prediction: Prediction) -> str:
        if not prediction.will_pass:
            return "likely_fail"
        if prediction.confidence >= self.pass_confidence_threshold:
            return "likely_pass"
        return "uncertain"

    def get_tests_by_category(self, prioritized: list[PrioritizedTest]) -> dict[str, list[PrioritizedTest]]:
        """Group tests by category, keeping rank order inside each group."""
        groups: dict[str, list[PrioritizedTest]] = {category: [] for category in CATEGORIES}
        for test in prioritized:
            groups[test.category].append(test)
        return groups

    def get_execution_order(self, prioritized: list[PrioritizedTest], max_tests: Optional[int] = None) -> list[str]:
        """Names to run, in order, optionally cut to the first ``max_tests``."""
        ranked = sorted(prioritized, key=lambda t: t.priority_rank)
        if max_tests:
            ranked = ranked[:max_tests]
        return [t.name for t in ranked]
