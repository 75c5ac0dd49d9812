"""
Store protocols for doses and calendar connections.

Services depend on these rather than on raw collections where a write
must report success per item.
"""

from typing import Protocol, Any, Optional, List, runtime_checkable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from biohacker.models.documents import (
    CalendarConnection, CalendarProvider, DoseEvent, DoseStatus
)


@dataclass
class WriteResult:
    """Outcome of a single persistence call."""
    success: bool
    error: Optional[str] = None


@runtime_checkable
class IDoseStore(Protocol):

    async def upsert(self, dose: DoseEvent) -> WriteResult:
        """Insert the dose unless its dose_id already exists."""
        ...

    async def get(self, dose_id: str) -> Optional[DoseEvent]:
        ...

    async def list_by_date_range(self, user_id: str, start: date, end: date) -> List[DoseEvent]:
        ...

    async def list_pending(self, cycle_ids: List[str], from_date: date) -> List[DoseEvent]:
        """Ordered by date, then by time slot within a day."""
        ...

    async def count(
        self, user_id: str, start: date, end: date, status: Optional[DoseStatus] = None
    ) -> int:
        ...

    async def update_status(
        self, dose_id: str, status: DoseStatus, notes: Optional[str] = None
    ) -> WriteResult:
        ...

    async def delete_for_cycle(self, cycle_id: str) -> int:
        ...

    async def prune_unscheduled(self, cycle_id: str, keep_ids: List[str]) -> int:
        ...


@runtime_checkable
class IConnectionStore(Protocol):

    async def get(self, user_id: str, provider: CalendarProvider) -> Optional[CalendarConnection]:
        ...

    async def upsert(self, connection: CalendarConnection) -> WriteResult:
        ...

    async def update(self, user_id: str, provider: CalendarProvider, **fields: Any) -> WriteResult:
        ...

    async def claim_sync(
        self, user_id: str, provider: CalendarProvider, now: datetime, stale_after: timedelta
    ) -> bool:
        """False while another sync holds an unexpired claim."""
        ...

    async def release_sync(self, user_id: str, provider: CalendarProvider) -> WriteResult:
        ...

    async def delete(self, user_id: str, provider: CalendarProvider) -> bool:
        ...
