"""
Biohacker - Calendar Credential Manager

Hands out a usable access token for a stored calendar connection,
refreshing it through the provider when the stored one has expired.
"""

import logging
from typing import Callable, Optional
from datetime import datetime, timedelta

from biohacker.calendar_sync.errors import TokenRefreshError
from biohacker.models.documents import CalendarConnection, SyncStatus, utcnow
from biohacker.protocols.calendar import IOAuthClient
from biohacker.protocols.stores import IConnectionStore

logger = logging.getLogger(__name__)


class CalendarCredentialManager:
    """
    valid -> expired -> refresh -> valid | refresh failed

    The stored connection is the only token cache. A refreshed token is
    written back before it is returned, so the next request inside the new
    expiry window skips the round-trip.
    """

    def __init__(
        self,
        connections: IConnectionStore,
        oauth: IOAuthClient,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.connections = connections
        self.oauth = oauth
        self.clock = clock or utcnow

    async def get_access_token(self, connection: CalendarConnection) -> str:
        """
        Return a valid access token for the connection

        Raises:
            TokenRefreshError: the token is expired and could not be
                refreshed. Callers must abort instead of using the stale token.
        """
        now = self.clock()
        if not connection.is_expired(now):
            return connection.access_token

        if not connection.refresh_token:
            raise TokenRefreshError("Access token expired and no refresh token is stored")

        logger.info(f"Refreshing {connection.provider.value} token for user {connection.user_id}")
        grant = await self.oauth.refresh_access_token(connection.refresh_token)

        expiry = now + timedelta(seconds=grant.expires_in)
        fields = {
            "access_token": grant.access_token,
            "token_expiry": expiry,
            "sync_status": SyncStatus.SYNCING,
        }
        # Google only rotates the refresh token occasionally
        if grant.refresh_token:
            fields["refresh_token"] = grant.refresh_token

        result = await self.connections.update(connection.user_id, connection.provider, **fields)
        if not result.success:
            logger.warning(f"Could not persist refreshed token for {connection.user_id}: {result.error}")

        connection.access_token = grant.access_token
        connection.token_expiry = expiry
        connection.sync_status = SyncStatus.SYNCING
        if grant.refresh_token:
            connection.refresh_token = grant.refresh_token

        return grant.access_token
