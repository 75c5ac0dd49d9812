"""
Biohacker - Google OAuth & Calendar Clients

Thin httpx wrappers over Google's OAuth2 token endpoint and the Calendar v3
events API.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode
import httpx

from biohacker.calendar_sync.errors import (
    OAuthConfigError, TokenExchangeError, TokenRefreshError, EventCreateError
)
from biohacker.protocols.calendar import TokenGrant, AccountInfo

logger = logging.getLogger(__name__)

# Google endpoints
AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"

CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
]

DEFAULT_TIMEOUT = 30


def _error_message(response: httpx.Response) -> Optional[str]:
    """
    Pull a readable message out of a Google error body

    Calendar errors look like {"error": {"message": ...}}, token endpoint
    errors like {"error": "invalid_grant", "error_description": ...}.
    """
    try:
        body = response.json()
    except ValueError:
        return None

    if not isinstance(body, dict):
        return None

    error = body.get("error")
    if isinstance(error, dict):
        return error.get("message")
    if isinstance(error, str):
        return body.get("error_description") or error
    return None


def _parse_grant(response: httpx.Response, error_cls: type) -> TokenGrant:
    """Token endpoint success body; a 2xx without an access token is a failure"""
    try:
        data = response.json()
    except ValueError:
        data = None

    if not isinstance(data, dict) or not data.get("access_token"):
        raise error_cls("Token response did not include an access token")

    return TokenGrant(
        access_token=data["access_token"],
        expires_in=int(data.get("expires_in", 3600)),
        refresh_token=data.get("refresh_token"),
    )


class GoogleOAuthClient:
    """
    OAuth2 web-server flow for Google

    Usage:
        oauth = GoogleOAuthClient(client_id, client_secret, redirect_uri, http)
        url = oauth.authorization_url(state)
        grant = await oauth.exchange_code(code)
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.http = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _require_config(self):
        if not self.is_configured:
            raise OAuthConfigError("Google OAuth not configured")

    def authorization_url(self, state: str) -> str:
        """
        Consent URL

        access_type=offline and prompt=consent make Google issue a refresh
        token every time, not only on the first consent.
        """
        if not self.client_id:
            raise OAuthConfigError("Google OAuth not configured")

        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(CALENDAR_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenGrant:
        """Trade an authorization code for access + refresh tokens"""
        self._require_config()

        try:
            response = await self.http.post(TOKEN_URL, data={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            })
        except httpx.HTTPError as e:
            raise TokenExchangeError(f"Token exchange request failed: {e}") from e

        if not response.is_success:
            message = _error_message(response) or f"HTTP {response.status_code}"
            raise TokenExchangeError(f"Failed to exchange code for tokens: {message}")

        return _parse_grant(response, TokenExchangeError)

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """Trade a refresh token for a new short-lived access token"""
        self._require_config()

        try:
            response = await self.http.post(TOKEN_URL, data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            })
        except httpx.HTTPError as e:
            raise TokenRefreshError(f"Token refresh request failed: {e}") from e

        if not response.is_success:
            message = _error_message(response) or f"HTTP {response.status_code}"
            raise TokenRefreshError(f"Failed to refresh token: {message}")

        return _parse_grant(response, TokenRefreshError)

    async def fetch_account_info(self, access_token: str) -> AccountInfo:
        """Email and display name of the linked Google account"""
        try:
            response = await self.http.get(
                USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"}
            )
        except httpx.HTTPError as e:
            logger.warning(f"User info lookup failed: {e}")
            return AccountInfo()

        if not response.is_success:
            logger.warning(f"User info lookup returned {response.status_code}")
            return AccountInfo()

        try:
            data = response.json()
        except ValueError:
            return AccountInfo()
        return AccountInfo(email=data.get("email"), name=data.get("name"))


class GoogleCalendarClient:
    """Creates events on the user's primary Google calendar"""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.http = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)

    async def create_event(self, access_token: str, event: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self.http.post(
                EVENTS_URL,
                json=event,
                headers={"Authorization": f"Bearer {access_token}"}
            )
        except httpx.HTTPError as e:
            raise EventCreateError(str(e) or type(e).__name__) from e

        if not response.is_success:
            raise EventCreateError(
                _error_message(response) or "Unknown error",
                status_code=response.status_code
            )

        # The event exists once Google answers 2xx, whatever the body
        try:
            body = response.json()
        except ValueError:
            logger.warning(f"Calendar API returned a non-JSON body ({response.status_code})")
            return {}
        return body if isinstance(body, dict) else {}
