"""
Biohacker - Calendar Connection Store

One document per (user_id, provider) in `calendar_connections`.
"""

from typing import Any, Optional
from datetime import datetime, timedelta
from enum import Enum
import logging

from biohacker.models.documents import CalendarConnection, CalendarProvider, utcnow
from biohacker.protocols.stores import WriteResult

logger = logging.getLogger(__name__)


def _to_document_value(value: Any) -> Any:
    """Match the JSON-mode encoding used by model_dump(mode="json")"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class ConnectionStore:
    """Calendar connections in the `calendar_connections` collection"""

    def __init__(self, db):
        self.db = db

    @staticmethod
    def _key(user_id: str, provider: CalendarProvider) -> dict:
        return {"user_id": user_id, "provider": provider.value}

    async def get(self, user_id: str, provider: CalendarProvider) -> Optional[CalendarConnection]:
        data = await self.db.calendar_connections.find_one(self._key(user_id, provider))
        if data:
            return CalendarConnection(**data)
        return None

    async def upsert(self, connection: CalendarConnection) -> WriteResult:
        """Create or replace the connection for its (user, provider); created_at is kept"""
        data = connection.model_dump(mode="json")
        created_at = data.pop("created_at")

        try:
            await self.db.calendar_connections.update_one(
                self._key(connection.user_id, connection.provider),
                {"$set": data, "$setOnInsert": {"created_at": created_at}},
                upsert=True
            )
        except Exception as e:
            logger.error(f"Error storing calendar connection for {connection.user_id}: {e}")
            return WriteResult(success=False, error=str(e))

        return WriteResult(success=True)

    async def update(self, user_id: str, provider: CalendarProvider, **fields: Any) -> WriteResult:
        """Set individual fields on an existing connection"""
        updates = {key: _to_document_value(value) for key, value in fields.items()}
        updates["updated_at"] = utcnow().isoformat()

        try:
            result = await self.db.calendar_connections.update_one(
                self._key(user_id, provider),
                {"$set": updates}
            )
        except Exception as e:
            logger.error(f"Error updating calendar connection for {user_id}: {e}")
            return WriteResult(success=False, error=str(e))

        if result.matched_count == 0:
            return WriteResult(success=False, error="Connection not found")

        return WriteResult(success=True)

    async def claim_sync(
        self,
        user_id: str,
        provider: CalendarProvider,
        now: datetime,
        stale_after: timedelta
    ) -> bool:
        """
        Atomically mark a sync as running for the connection

        Succeeds when no sync holds the claim or the holder started before
        `now - stale_after`. Returns False while another sync is running.
        """
        cutoff = (now - stale_after).isoformat()
        filter = {
            **self._key(user_id, provider),
            "$or": [
                {"sync_started_at": None},
                {"sync_started_at": {"$lt": cutoff}},
            ],
        }

        result = await self.db.calendar_connections.update_one(
            filter,
            {"$set": {
                "sync_started_at": now.isoformat(),
                "updated_at": utcnow().isoformat(),
            }}
        )
        return result.matched_count > 0

    async def release_sync(self, user_id: str, provider: CalendarProvider) -> WriteResult:
        """Drop the sync claim without touching the sync status"""
        return await self.update(user_id, provider, sync_started_at=None)

    async def delete(self, user_id: str, provider: CalendarProvider) -> bool:
        result = await self.db.calendar_connections.delete_one(self._key(user_id, provider))
        return result.deleted_count > 0
