"""
Biohacker - Calendar Errors
"""

from typing import Optional


class CalendarError(Exception):
    """Base class for calendar integration failures."""


class OAuthConfigError(CalendarError):
    """OAuth client id/secret are not configured."""


class TokenExchangeError(CalendarError):
    """Authorization code could not be exchanged for tokens."""


class TokenRefreshError(CalendarError):
    """Expired access token could not be refreshed. Aborts a sync."""


class ConnectionNotFoundError(CalendarError):
    """The user has no calendar connection for the provider."""


class EventCreateError(CalendarError):
    """A single event could not be created. Isolated per dose."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SyncInProgressError(CalendarError):
    """Another sync for the same connection holds the sync claim."""
