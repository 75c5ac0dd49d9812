"""
Biohacker - External Calendar Integration
"""

from .errors import (
    CalendarError, OAuthConfigError, TokenExchangeError, TokenRefreshError,
    ConnectionNotFoundError, EventCreateError, SyncInProgressError
)
from .google import GoogleOAuthClient, GoogleCalendarClient
from .credentials import CalendarCredentialManager
from .reconciler import CalendarReconciler, CalendarSyncService, SyncResult

__all__ = [
    "CalendarError",
    "OAuthConfigError",
    "TokenExchangeError",
    "TokenRefreshError",
    "ConnectionNotFoundError",
    "EventCreateError",
    "SyncInProgressError",
    "GoogleOAuthClient",
    "GoogleCalendarClient",
    "CalendarCredentialManager",
    "CalendarReconciler",
    "CalendarSyncService",
    "SyncResult",
]
