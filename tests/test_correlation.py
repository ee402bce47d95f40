"""Tests for failure correlation tracking."""

from datetime import timedelta

import pytest

from testintel.analysis.correlation import CorrelationTracker
from testintel.config import CorrelationConfig


class TestCorrelationTracker:
    """Tests for the CorrelationTracker class."""

    @pytest.fixture
    def tracker(self):
        return CorrelationTracker()

    def test_nearby_failure_is_correlated(self, tracker, make_execution, base_time):
        """Test that a failure inside the window bumps the score."""
        other = [make_execution(result="fail", timestamp=base_time, test_id="b")]

        bumped = tracker.observe_failure("a", base_time + timedelta(minutes=2), [("b", other)])

        assert bumped == ["b"]
        assert tracker.score("a", "b") == pytest.approx(0.1)
        assert tracker.score("b", "a") == 0.0

    def test_distant_failure_is_ignored(self, tracker, make_execution, base_time):
        """Test that failures outside the window are not correlated."""
        other = [make_execution(result="fail", timestamp=base_time, test_id="b")]

        tracker.observe_failure("a", base_time + timedelta(minutes=6), [("b", other)])

        assert tracker.score("a", "b") == 0.0

    def test_passing_neighbours_are_ignored(self, tracker, make_execution, base_time):
        """Test that only failures count."""
        other = [make_execution(result="pass", timestamp=base_time, test_id="b")]

        tracker.observe_failure("a", base_time, [("b", other)])

        assert tracker.score("a", "b") == 0.0

    def test_self_is_ignored(self, tracker, make_execution, base_time):
        """Test that a test is never correlated with itself."""
        own = [make_execution(result="fail", timestamp=base_time, test_id="a")]

        tracker.observe_failure("a", base_time, [("a", own)])

        assert tracker.to_dict() == {}

    def test_score_is_capped(self, tracker, make_execution, base_time):
        """Test that scores never exceed 1.0."""
        other = [make_execution(result="fail", timestamp=base_time, test_id="b")]
        for _ in range(15):
            tracker.observe_failure("a", base_time, [("b", other)])

        assert tracker.score("a", "b") == 1.0

    def test_correlated_filters_sorts_and_truncates(self, tracker):
        """Test the reported list of correlated tests."""
        tracker.load({
            "a": {"b": 0.6, "c": 0.9, "d": 0.5, "e": 0.7, "f": 0.8, "g": 1.0, "h": 0.55},
        })
        names = {"b": "test_b", "c": "test_c", "e": "test_e", "f": "test_f", "g": "test_g", "h": "test_h"}

        correlated = tracker.correlated("a", names.get)

        assert correlated == ["test_g", "test_c", "test_f", "test_e", "test_b"]

    def test_correlated_unknown(self, tracker):
        """Test that unknown tests have no correlations."""
        assert tracker.correlated("missing") == []

    def test_strongly_correlated_and_groups(self, tracker):
        """Test detection of tightly coupled tests."""
        tracker.load({
            "a": {"b": 0.9, "c": 0.95, "d": 1.0},
            "b": {"a": 0.9, "c": 0.5},
        })

        assert set(tracker.strongly_correlated("a")) == {"b", "c", "d"}
        groups = tracker.coupled_groups()
        assert groups == [["a", "d", "c", "b"]]

    def test_custom_window(self, make_execution, base_time):
        """Test that the configured window is used."""
        tracker = CorrelationTracker(CorrelationConfig(window_seconds=30))
        other = [make_execution(result="fail", timestamp=base_time, test_id="b")]

        tracker.observe_failure("a", base_time + timedelta(seconds=45), [("b", other)])

        assert tracker.score("a", "b") == 0.0

    def test_clear(self, tracker):
        """Test clearing all scores."""
        tracker.load({"a": {"b": 0.9}})
        tracker.clear()
        assert tracker.to_dict() == {}
