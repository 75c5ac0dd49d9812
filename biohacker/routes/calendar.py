"""
Biohacker - Calendar Sync Endpoints

Google Calendar OAuth connect/disconnect and "sync now".
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, RedirectResponse
from typing import Optional
from datetime import timedelta
import logging

from biohacker.calendar_sync import (
    CalendarSyncService, ConnectionNotFoundError, OAuthConfigError,
    SyncInProgressError, TokenExchangeError, TokenRefreshError
)
from biohacker.calendar_sync.state import sign_state, verify_state
from biohacker.deps import get_calendar_client, get_database, get_oauth_client, get_settings
from biohacker.middleware.auth import get_current_user
from biohacker.models.documents import CalendarConnection, CalendarProvider, SyncStatus, utcnow
from biohacker.storage import ConnectionStore

logger = logging.getLogger(__name__)

router = APIRouter()


def _calendar_redirect(query: str) -> RedirectResponse:
    """Send the browser back to the frontend calendar page"""
    settings = get_settings()
    return RedirectResponse(f"{settings.app_url}/app/calendar?{query}", status_code=307)


# =============================================================================
# OAUTH
# =============================================================================

@router.get("/calendar/google/auth")
async def start_google_oauth(user: dict = Depends(get_current_user)):
    """Redirect the signed-in user to Google's consent screen"""
    settings = get_settings()
    oauth = get_oauth_client()

    try:
        url = oauth.authorization_url(sign_state(user["user_id"], settings.master_api_key))
    except OAuthConfigError as e:
        return JSONResponse(status_code=500, content={"error": str(e)})

    return RedirectResponse(url, status_code=307)


@router.get("/calendar/google/callback")
async def google_oauth_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None
):
    """
    Google redirects here after consent

    Exchanges the code, stores the connection and bounces back to the
    frontend with ?success=... or ?error=...
    """
    if error:
        return _calendar_redirect("error=oauth_denied")

    if not code or not state:
        return _calendar_redirect("error=invalid_callback")

    settings = get_settings()
    user_id = verify_state(state, settings.master_api_key)
    if not user_id:
        return _calendar_redirect("error=unauthorized")

    oauth = get_oauth_client()

    try:
        grant = await oauth.exchange_code(code)
    except OAuthConfigError:
        logger.error("Missing Google OAuth credentials")
        return _calendar_redirect("error=config_error")
    except TokenExchangeError as e:
        logger.error(f"OAuth callback error: {e}")
        return _calendar_redirect("error=token_exchange_failed")

    account = await oauth.fetch_account_info(grant.access_token)

    connection = CalendarConnection(
        user_id=user_id,
        provider=CalendarProvider.GOOGLE,
        access_token=grant.access_token,
        refresh_token=grant.refresh_token,
        token_expiry=utcnow() + timedelta(seconds=grant.expires_in),
        calendar_email=account.email,
        calendar_name=account.name,
        sync_enabled=True,
        sync_status=SyncStatus.ACTIVE,
    )

    result = await ConnectionStore(get_database()).upsert(connection)
    if not result.success:
        logger.error(f"Failed to store calendar connection: {result.error}")
        return _calendar_redirect("error=db_error")

    return _calendar_redirect("success=google_connected")


# =============================================================================
# CONNECTION
# =============================================================================

@router.get("/calendar/google/status")
async def google_connection_status(user: dict = Depends(get_current_user)):
    """Whether the user is connected, and how the last sync went"""
    connection = await ConnectionStore(get_database()).get(user["user_id"], CalendarProvider.GOOGLE)
    if not connection:
        return {"connected": False}

    return {"connected": True, **connection.public_view()}


@router.delete("/calendar/google")
async def disconnect_google(user: dict = Depends(get_current_user)):
    """Forget the stored Google tokens"""
    deleted = await ConnectionStore(get_database()).delete(user["user_id"], CalendarProvider.GOOGLE)
    if not deleted:
        raise HTTPException(404, "No calendar connection found")

    return {"status": "disconnected"}


# =============================================================================
# SYNC
# =============================================================================

@router.post("/calendar/google/sync")
async def sync_google_calendar(user: dict = Depends(get_current_user)):
    """
    Push every upcoming dose of the user's active cycles to Google Calendar

    Returns {message, eventCount, errors?}. One failed event does not stop
    the rest; an expired token that cannot be refreshed stops everything.
    """
    service = CalendarSyncService(
        db=get_database(),
        oauth=get_oauth_client(),
        calendar=get_calendar_client(),
    )

    try:
        result = await service.sync_user(user["user_id"])
    except ConnectionNotFoundError:
        return JSONResponse(status_code=404, content={"error": "No calendar connection found"})
    except SyncInProgressError:
        return JSONResponse(status_code=409, content={"error": "Sync already in progress"})
    except (TokenRefreshError, OAuthConfigError) as e:
        logger.error(f"Token refresh failed for {user['user_id']}: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to refresh token"})
    except Exception as e:
        logger.exception(f"Sync error: {e}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return result.to_response()
