"""
testintel - a learning engine for test execution history.

This package provides tools to:
- Remember a bounded history of outcomes for every test
- Detect flaky, slow and always-failing tests
- Track tests that fail together
- Predict which tests will fail given a set of changed files
- Order tests so likely failures run first
"""

__version__ = "0.1.0"
__author__ = "TestIntel Team"

from testintel.engine import TestIntelligenceEngine

__all__ = ["TestIntelligenceEngine"]
