"""Insight and dashboard aggregation."""

from testintel.insights.aggregator import InsightsAggregator

__all__ = ["InsightsAggregator"]
