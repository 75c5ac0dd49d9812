"""
Calendar provider protocols.

OAuth token operations and event creation are split so the credential
manager and the reconciler can each be tested against a focused mock.
"""

from typing import Protocol, Any, Optional, Dict, runtime_checkable
from dataclasses import dataclass


@dataclass
class TokenGrant:
    """Tokens returned by a code exchange or refresh."""
    access_token: str
    expires_in: int                         # seconds
    refresh_token: Optional[str] = None     # Only sent on first consent


@dataclass
class AccountInfo:
    """The external account a connection is linked to."""
    email: Optional[str] = None
    name: Optional[str] = None


@runtime_checkable
class IOAuthClient(Protocol):
    """OAuth2 operations against the provider's token endpoint."""

    def authorization_url(self, state: str) -> str:
        """URL the user is redirected to for consent."""
        ...

    async def exchange_code(self, code: str) -> TokenGrant:
        """grant_type=authorization_code"""
        ...

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """grant_type=refresh_token"""
        ...

    async def fetch_account_info(self, access_token: str) -> AccountInfo:
        ...


@runtime_checkable
class ICalendarClient(Protocol):
    """Event operations on the user's primary calendar."""

    async def create_event(self, access_token: str, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create an event and return the provider's representation.

        Raises EventCreateError on a non-2xx response or transport failure.
        """
        ...
