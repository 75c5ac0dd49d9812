"""
Tests for the Google OAuth and Calendar HTTP clients.

Requests are answered by httpx.MockTransport; nothing leaves the process.
"""

import json
import pytest
import httpx
from urllib.parse import parse_qs, urlparse

from biohacker.calendar_sync import (
    EventCreateError, GoogleCalendarClient, GoogleOAuthClient, OAuthConfigError,
    TokenExchangeError, TokenRefreshError
)
from biohacker.calendar_sync.google import EVENTS_URL, TOKEN_URL


def _oauth(handler, client_id="client-id", client_secret="client-secret") -> GoogleOAuthClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleOAuthClient(client_id, client_secret, "http://api.test/callback", http_client=http)


def _calendar(handler) -> GoogleCalendarClient:
    return GoogleCalendarClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_authorization_url_requests_offline_access():
    oauth = GoogleOAuthClient("client-id", "secret", "http://api.test/callback")

    url = urlparse(oauth.authorization_url("signed-state"))
    params = parse_qs(url.query)

    assert url.netloc == "accounts.google.com"
    assert params["access_type"] == ["offline"]
    assert params["prompt"] == ["consent"]
    assert params["state"] == ["signed-state"]
    assert params["redirect_uri"] == ["http://api.test/callback"]
    assert "https://www.googleapis.com/auth/calendar.events" in params["scope"][0].split(" ")


def test_authorization_url_requires_client_id():
    oauth = GoogleOAuthClient("", "", "http://api.test/callback")

    with pytest.raises(OAuthConfigError):
        oauth.authorization_url("state")


@pytest.mark.asyncio
async def test_refresh_posts_refresh_grant():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"access_token": "fresh", "expires_in": 1800})

    grant = await _oauth(handler).refresh_access_token("refresh-1")

    assert seen["url"] == TOKEN_URL
    assert seen["form"]["grant_type"] == ["refresh_token"]
    assert seen["form"]["refresh_token"] == ["refresh-1"]
    assert grant.access_token == "fresh"
    assert grant.expires_in == 1800
    assert grant.refresh_token is None


@pytest.mark.asyncio
async def test_refresh_rejected_by_google():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Token has been expired or revoked."})

    with pytest.raises(TokenRefreshError, match="expired or revoked"):
        await _oauth(handler).refresh_access_token("refresh-1")


@pytest.mark.asyncio
async def test_refresh_success_without_access_token():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    with pytest.raises(TokenRefreshError, match="access token"):
        await _oauth(handler).refresh_access_token("refresh-1")


@pytest.mark.asyncio
async def test_refresh_success_with_html_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>captive portal</html>")

    with pytest.raises(TokenRefreshError):
        await _oauth(handler).refresh_access_token("refresh-1")



@pytest.mark.asyncio
async def test_refresh_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TokenRefreshError):
        await _oauth(handler).refresh_access_token("refresh-1")


@pytest.mark.asyncio
async def test_refresh_requires_credentials():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(OAuthConfigError):
        await _oauth(handler, client_secret="").refresh_access_token("refresh-1")


@pytest.mark.asyncio
async def test_exchange_code():
    def handler(request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["code"] == ["auth-code"]
        return httpx.Response(200, json={
            "access_token": "access", "refresh_token": "refresh", "expires_in": 3599
        })

    grant = await _oauth(handler).exchange_code("auth-code")

    assert grant.access_token == "access"
    assert grant.refresh_token == "refresh"
    assert grant.expires_in == 3599


@pytest.mark.asyncio
async def test_exchange_code_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "invalid_grant"})

    with pytest.raises(TokenExchangeError, match="invalid_grant"):
        await _oauth(handler).exchange_code("bad-code")


@pytest.mark.asyncio
async def test_exchange_success_without_access_token():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"refresh_token": "refresh"})

    with pytest.raises(TokenExchangeError, match="access token"):
        await _oauth(handler).exchange_code("auth-code")



@pytest.mark.asyncio
async def test_account_info_failure_is_not_fatal():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "Invalid Credentials"}})

    account = await _oauth(handler).fetch_account_info("token")

    assert account.email is None
    assert account.name is None


@pytest.mark.asyncio
async def test_create_event_sends_bearer_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "evt-1"})

    created = await _calendar(handler).create_event("token-1", {"summary": "dose"})

    assert created == {"id": "evt-1"}
    assert seen["url"] == EVENTS_URL
    assert seen["auth"] == "Bearer token-1"
    assert seen["body"] == {"summary": "dose"}


@pytest.mark.asyncio
async def test_create_event_error_carries_google_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error": {"code": 403, "message": "Rate Limit Exceeded"}})

    with pytest.raises(EventCreateError) as exc_info:
        await _calendar(handler).create_event("token", {})

    assert str(exc_info.value) == "Rate Limit Exceeded"
    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_create_event_error_without_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="oops")

    with pytest.raises(EventCreateError, match="Unknown error"):
        await _calendar(handler).create_event("token", {})


@pytest.mark.asyncio
async def test_create_event_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(EventCreateError, match="timed out"):
        await _calendar(handler).create_event("token", {})


@pytest.mark.asyncio
async def test_create_event_accepts_non_json_success():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="OK")

    created = await _calendar(handler).create_event("token", {"summary": "dose"})

    assert created == {}
