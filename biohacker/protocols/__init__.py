"""
Protocol definitions for dependency injection and testing.

These protocols define the interfaces that collaborators must implement,
so services can be exercised against in-memory mocks.
"""

from .database import IDatabase, ICollection, IAsyncCursor
from .llm import ILLMClient
from .calendar import IOAuthClient, ICalendarClient
from .stores import IDoseStore, IConnectionStore

__all__ = [
    "IDatabase",
    "ICollection",
    "IAsyncCursor",
    "ILLMClient",
    "IOAuthClient",
    "ICalendarClient",
    "IDoseStore",
    "IConnectionStore",
]
