"""Pattern detection and failure correlation."""

from testintel.analysis.correlation import CorrelationTracker
from testintel.analysis.patterns import PatternDetector, recommend_action

__all__ = ["CorrelationTracker", "PatternDetector", "recommend_action"]
