"""
Mock implementations for testing.

These mocks provide in-memory implementations of external services,
enabling unit tests to run without network calls.
"""

from .mock_database import MockDatabase, MockCollection, MockCursor
from .mock_llm import MockLLMClient, MockChatCompletions
from .mock_calendar import MockOAuthClient, MockCalendarClient

__all__ = [
    "MockDatabase",
    "MockCollection",
    "MockCursor",
    "MockLLMClient",
    "MockChatCompletions",
    "MockOAuthClient",
    "MockCalendarClient",
]
