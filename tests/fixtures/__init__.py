"""Test fixtures for Foodcheck."""

from tests.fixtures.mocks import (
    MockClaudeService,
    create_mock_with_error,
    create_mock_for_analysis,
)

__all__ = [
    "MockClaudeService",
    "create_mock_with_error",
    "create_mock_for_analysis",
]
