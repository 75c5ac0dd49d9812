"""
Biohacker - Dose Store

Persists dose events keyed by their composite dose_id. Write failures are
reported per dose so a generation run can report a partial count.
"""

from typing import Optional, List
from datetime import date
import logging

from biohacker.models.documents import DoseEvent, DoseStatus, utcnow
from biohacker.protocols.stores import WriteResult

logger = logging.getLogger(__name__)


class DoseStore:
    """Dose events in the `dose_events` collection"""

    def __init__(self, db):
        self.db = db

    async def upsert(self, dose: DoseEvent) -> WriteResult:
        """
        Insert a dose if no dose with the same dose_id exists

        Existing doses are left untouched, so regenerating a schedule keeps
        fulfillment status and the original peptide/dose snapshot.
        """
        data = dose.model_dump(mode="json")
        dose_id = data.pop("dose_id")

        try:
            await self.db.dose_events.update_one(
                {"dose_id": dose_id},
                {"$setOnInsert": data},
                upsert=True
            )
        except Exception as e:
            logger.error(f"Error saving dose {dose_id}: {e}")
            return WriteResult(success=False, error=str(e))

        return WriteResult(success=True)

    async def get(self, dose_id: str) -> Optional[DoseEvent]:
        data = await self.db.dose_events.find_one({"dose_id": dose_id})
        if data:
            return DoseEvent(**data)
        return None

    async def list_by_date_range(self, user_id: str, start: date, end: date) -> List[DoseEvent]:
        """A user's doses between start and end inclusive, by date"""
        cursor = self.db.dose_events.find({
            "user_id": user_id,
            "scheduled_date": {"$gte": start.isoformat(), "$lte": end.isoformat()}
        }).sort([("scheduled_date", 1), ("time_label", 1)])

        return [DoseEvent(**doc) async for doc in cursor]

    async def list_for_cycle(self, cycle_id: str) -> List[DoseEvent]:
        cursor = self.db.dose_events.find({"cycle_id": cycle_id}).sort(
            [("scheduled_date", 1), ("time_label", 1)]
        )
        return [DoseEvent(**doc) async for doc in cursor]

    async def list_pending(self, cycle_ids: List[str], from_date: date) -> List[DoseEvent]:
        """Doses of the given cycles dated on or after from_date, by date then slot"""
        if not cycle_ids:
            return []

        cursor = self.db.dose_events.find({
            "cycle_id": {"$in": cycle_ids},
            "scheduled_date": {"$gte": from_date.isoformat()}
        }).sort([("scheduled_date", 1), ("time_label", 1)])

        return [DoseEvent(**doc) async for doc in cursor]

    async def count(
        self,
        user_id: str,
        start: date,
        end: date,
        status: Optional[DoseStatus] = None
    ) -> int:
        query = {
            "user_id": user_id,
            "scheduled_date": {"$gte": start.isoformat(), "$lte": end.isoformat()}
        }
        if status:
            query["status"] = status.value
        return await self.db.dose_events.count_documents(query)

    async def update_status(
        self,
        dose_id: str,
        status: DoseStatus,
        notes: Optional[str] = None
    ) -> WriteResult:
        """Set a dose's status; logging stamps logged_at, anything else clears it"""
        updates = {
            "status": status.value,
            "logged_at": utcnow().isoformat() if status == DoseStatus.LOGGED else None,
        }
        if notes is not None:
            updates["notes"] = notes

        try:
            result = await self.db.dose_events.update_one(
                {"dose_id": dose_id},
                {"$set": updates}
            )
        except Exception as e:
            logger.error(f"Error updating dose {dose_id}: {e}")
            return WriteResult(success=False, error=str(e))

        if result.matched_count == 0:
            return WriteResult(success=False, error=f"Dose {dose_id} not found")

        return WriteResult(success=True)

    async def delete_for_cycle(self, cycle_id: str) -> int:
        """Remove every dose owned by a cycle"""
        result = await self.db.dose_events.delete_many({"cycle_id": cycle_id})
        return result.deleted_count

    async def prune_unscheduled(self, cycle_id: str, keep_ids: List[str]) -> int:
        """
        Remove still-scheduled doses that the cycle's current schedule no
        longer produces. Logged and missed doses are history and stay.
        """
        result = await self.db.dose_events.delete_many({
            "cycle_id": cycle_id,
            "status": DoseStatus.SCHEDULED.value,
            "dose_id": {"$nin": keep_ids}
        })
        return result.deleted_count
