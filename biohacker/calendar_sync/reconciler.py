"""
Biohacker - Calendar Reconciler

Pushes upcoming doses to the user's external calendar, one event per dose.
A failed event is recorded and skipped; it never stops the batch.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime, timedelta

from biohacker.calendar_sync.credentials import CalendarCredentialManager
from biohacker.calendar_sync.errors import (
    ConnectionNotFoundError, EventCreateError, SyncInProgressError
)
from biohacker.models.documents import (
    CalendarConnection, CalendarProvider, Cycle, CycleStatus, DoseEvent,
    SyncStatus, utcnow
)
from biohacker.protocols.calendar import ICalendarClient, IOAuthClient
from biohacker.protocols.stores import IConnectionStore, IDoseStore
from biohacker.storage import ConnectionStore, DoseStore

logger = logging.getLogger(__name__)

ATTRIBUTION = "Logged via Biohacker Protocol Tracker"
HEALTH_COLOR_ID = "9"   # Google "blueberry"
SYNC_CLAIM_TTL = timedelta(minutes=10)


@dataclass
class SyncResult:
    """Outcome of one reconciliation batch"""
    event_count: int = 0
    errors: List[str] = field(default_factory=list)
    message: str = ""

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_response(self) -> Dict[str, Any]:
        body = {"message": self.message, "eventCount": self.event_count}
        if self.errors:
            body["errors"] = self.errors
        return body


class CalendarReconciler:
    """Creates calendar events for doses and records the batch status"""

    def __init__(
        self,
        calendar: ICalendarClient,
        connections: IConnectionStore,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.calendar = calendar
        self.connections = connections
        self.clock = clock or utcnow

    @staticmethod
    def build_event(dose: DoseEvent, cycle: Cycle) -> Dict[str, Any]:
        """All-day event on the dose's date"""
        day = dose.scheduled_date.isoformat()
        return {
            "summary": f"💉 {dose.peptide_name} - {dose.dose_amount}",
            "description": (
                f"Cycle: {cycle.display_name}\n"
                f"Peptide: {dose.peptide_name}\n"
                f"Dose: {dose.dose_amount}\n\n"
                f"{ATTRIBUTION}"
            ),
            "start": {"date": day},
            "end": {"date": day},
            "colorId": HEALTH_COLOR_ID,
        }

    @staticmethod
    def _dose_error(dose: DoseEvent, message: str) -> str:
        return f"{dose.peptide_name} on {dose.scheduled_date.isoformat()}: {message or 'Unknown error'}"

    async def push_doses(
        self,
        access_token: str,
        doses: List[DoseEvent],
        cycles: Dict[str, Cycle]
    ) -> SyncResult:
        """
        Create one event per upcoming dose, strictly in order

        Doses dated before today and doses whose cycle is not in `cycles`
        are skipped.
        """
        today = self.clock().date()
        result = SyncResult()

        for dose in doses:
            if dose.scheduled_date < today:
                continue

            cycle = cycles.get(dose.cycle_id)
            if not cycle:
                continue

            try:
                await self.calendar.create_event(access_token, self.build_event(dose, cycle))
            except EventCreateError as e:
                result.errors.append(self._dose_error(dose, str(e)))
                continue
            except Exception as e:
                logger.warning(f"Unexpected error creating event for dose {dose.dose_id}: {e!r}")
                result.errors.append(self._dose_error(dose, str(e)))
                continue

            result.event_count += 1

        result.message = f"Synced {result.event_count} events to Google Calendar"
        return result

    async def record_outcome(self, connection: CalendarConnection, result: SyncResult):
        """Best-effort write of the batch status; moves last_sync_at, drops the sync claim"""
        write = await self.connections.update(
            connection.user_id,
            connection.provider,
            sync_status=SyncStatus.SUCCESS if result.ok else SyncStatus.ERROR,
            last_sync_at=self.clock(),
            sync_error=result.errors[0] if result.errors else None,
            sync_started_at=None,
        )
        if not write.success:
            logger.warning(f"Could not record sync status for {connection.user_id}: {write.error}")

    async def reconcile(
        self,
        connection: CalendarConnection,
        access_token: str,
        doses: List[DoseEvent],
        cycles: Dict[str, Cycle]
    ) -> SyncResult:
        result = await self.push_doses(access_token, doses, cycles)
        await self.record_outcome(connection, result)

        logger.info(
            f"Calendar sync for {connection.user_id}: "
            f"{result.event_count} created, {len(result.errors)} failed"
        )
        return result


class CalendarSyncService:
    """
    One "sync now" run for a user

    connection -> sync claim -> valid token -> active cycles -> upcoming doses -> events

    Only one run per connection holds the claim; a claim older than
    SYNC_CLAIM_TTL is treated as abandoned.
    """

    def __init__(
        self,
        db,
        oauth: IOAuthClient,
        calendar: ICalendarClient,
        provider: CalendarProvider = CalendarProvider.GOOGLE,
        clock: Optional[Callable[[], datetime]] = None,
        connections: Optional[IConnectionStore] = None,
        doses: Optional[IDoseStore] = None
    ):
        self.db = db
        self.provider = provider
        self.clock = clock or utcnow
        self.connections = connections or ConnectionStore(db)
        self.doses = doses or DoseStore(db)
        self.credentials = CalendarCredentialManager(self.connections, oauth, clock=self.clock)
        self.reconciler = CalendarReconciler(calendar, self.connections, clock=self.clock)

    async def _active_cycles(self, user_id: str) -> Dict[str, Cycle]:
        cursor = self.db.cycles.find({"user_id": user_id, "status": CycleStatus.ACTIVE.value})
        cycles = {}
        async for doc in cursor:
            cycle = Cycle(**doc)
            cycles[cycle.cycle_id] = cycle
        return cycles

    async def sync_user(self, user_id: str) -> SyncResult:
        """
        Raises:
            ConnectionNotFoundError: user has not linked the provider
            SyncInProgressError: another sync for the connection is running
            TokenRefreshError: token expired and refresh failed; no events
                were attempted
        """
        connection = await self.connections.get(user_id, self.provider)
        if not connection:
            raise ConnectionNotFoundError("No calendar connection found")

        claimed = await self.connections.claim_sync(
            user_id, self.provider, self.clock(), SYNC_CLAIM_TTL
        )
        if not claimed:
            raise SyncInProgressError("Sync already in progress")

        try:
            access_token = await self.credentials.get_access_token(connection)

            cycles = await self._active_cycles(user_id)
            if not cycles:
                result = SyncResult(message="No active cycles to sync")
                await self.reconciler.record_outcome(connection, result)
                return result

            doses = await self.doses.list_pending(list(cycles.keys()), self.clock().date())
            return await self.reconciler.reconcile(connection, access_token, doses, cycles)
        except Exception:
            await self.connections.release_sync(user_id, self.provider)
            raise
