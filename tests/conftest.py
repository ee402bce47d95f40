"""Shared fixtures for testintel tests."""

import uuid
from datetime import datetime, timedelta

import pytest

from testintel.storage.history import identity_of
from testintel.storage.models import Execution, ExecutionResult

BASE_TIME = datetime(2024, 1, 10, 12, 0, 0)


@pytest.fixture
def make_execution():
    """Factory for a single execution."""

    def _make(
        result="pass",
        duration_ms=100.0,
        timestamp=BASE_TIME,
        test_id=None,
        changed_files=(),
        error_message=None,
    ):
        return Execution(
            id=uuid.uuid4().hex,
            test_id=test_id or identity_of("tests/test_example.py", "test_example"),
            result=ExecutionResult(result),
            duration_ms=duration_ms,
            timestamp=timestamp,
            error_message=error_message,
            changed_files=tuple(changed_files),
        )

    return _make


@pytest.fixture
def make_history(make_execution):
    """Factory for a most-recent-first history.

    Results and durations are given oldest first, one minute apart.
    """

    def _make(results, durations=None, start=BASE_TIME, test_id=None):
        durations = durations or [100.0] * len(results)
        executions = [
            make_execution(
                result=result,
                duration_ms=duration,
                timestamp=start + timedelta(minutes=i),
                test_id=test_id,
            )
            for i, (result, duration) in enumerate(zip(results, durations))
        ]
        return list(reversed(executions))

    return _make


@pytest.fixture
def base_time():
    """Fixed reference time used by the execution factories."""
    return BASE_TIME
