"""Outcome prediction for tests that have not run yet."""

from dataclasses import dataclass
from typing import Iterable, Optional

from testintel.config import EngineConfig
from testintel.storage.history import HistoryStore, identity_of
from testintel.storage.models import Execution, Prediction

INSUFFICIENT_DATA_CONFIDENCE = 0.3
INSUFFICIENT_DATA_ORDER = 999.0


@dataclass
class PredictionFactors:
    """Signals extracted from a test's history."""

    history_length: int
    recent_failure_rate: float = 0.0
    file_correlation: float = 0.0

    def compute_confidence(self) -> float:
        """Confidence grows with history and with how one-sided the results are.

        Returns:
            Confidence between 0.1 and 0.9
        """
        raw = (self.history_length / 20) * (1 - abs(0.5 - self.recent_failure_rate))
        return min(0.9, max(0.1, raw))

    def describe(self) -> str:
        """Human-readable reason for the prediction."""
        rate = f"{self.recent_failure_rate * 100:.0f}%"
        if self.recent_failure_rate > 0.7:
            return f"Frequently fails ({rate} failure rate)"
        if self.file_correlation > 0.7:
            return "Changed files strongly correlate with past failures"
        if self.recent_failure_rate < 0.1:
            return f"Rarely fails ({rate} failure rate)"
        return f"Mixed results with {rate} failure rate"


def file_correlation_of(history: list[Execution], changed_files: Iterable[str]) -> float:
    """Sum of changed-file overlap ratios over past failures.

    For every failing execution that recorded changed files, the share of those
    files that are also in ``changed_files`` is added to the total.
    """
    current = set(changed_files)
    if not current:
        return 0.0

    total = 0.0
    for execution in history:
        if not execution.failed or not execution.changed_files:
            continue
        overlap = sum(1 for f in execution.changed_files if f in current)
        if overlap:
            total += overlap / len(execution.changed_files)
    return total


class OutcomePredictor:
    """Predicts pass/fail and a fail-fast run order for candidate tests."""

    def __init__(self, store: HistoryStore, config: Optional[EngineConfig] = None):
        """Initialize the predictor.

        Args:
            store: History of every tracked test
            config: Prediction thresholds
        """
        self.store = store
        self.config = config or EngineConfig()

    def predict(
        self,
        candidates: Iterable[tuple[str, str]],
        changed_files: Iterable[str],
    ) -> list[Prediction]:
        """Predict outcomes for candidate tests.

        Args:
            candidates: (test_name, file_name) pairs
            changed_files: Paths changed since the last run

        Returns:
            Predictions sorted by suggested order, likely failures first
        """
        changed = list(changed_files)
        predictions = [
            self.predict_one(test_name, file_name, changed)
            for test_name, file_name in candidates
        ]
        predictions.sort(key=lambda p: p.suggested_order)
        return predictions

    def predict_one(self, test_name: str, file_name: str, changed_files: list[str]) -> Prediction:
        test_id = identity_of(file_name, test_name)
        history = self.store.history_of(test_id)

        if len(history) < self.config.min_history_for_prediction:
            return Prediction(
                test_id=test_id,
                test_name=test_name,
                file_name=file_name,
                will_pass=True,
                confidence=INSUFFICIENT_DATA_CONFIDENCE,
                reasoning="Insufficient historical data",
                suggested_order=INSUFFICIENT_DATA_ORDER,
            )

        recent = history[: self.config.recent_window]
        factors = PredictionFactors(
            history_length=len(history),
            recent_failure_rate=sum(1 for e in recent if e.failed) / len(recent),
            file_correlation=file_correlation_of(history, changed_files),
        )

        will_pass = (
            factors.recent_failure_rate < self.config.fail_rate_threshold
            and factors.file_correlation < self.config.file_correlation_threshold
        )
        confidence = factors.compute_confidence()

        # Confident failures get the lowest keys, confident passes the highest.
        if will_pass:
            suggested_order = 900 + confidence * 100
        else:
            suggested_order = 100 - confidence * 100

        return Prediction(
            test_id=test_id,
            test_name=test_name,
            file_name=file_name,
            will_pass=will_pass,
            confidence=confidence,
            reasoning=factors.describe(),
            suggested_order=suggested_order,
        )
