"""Outcome prediction and test prioritization."""

from testintel.risk.predictor import OutcomePredictor
from testintel.risk.prioritizer import TestPrioritizer

__all__ = ["OutcomePredictor", "TestPrioritizer"]
