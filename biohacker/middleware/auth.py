"""
Biohacker - Authentication Middleware

API key validation for securing endpoints. Sessions live with the identity
provider in front of this API; the frontend proxy forwards the signed-in
user's id alongside the master key.
"""

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import hashlib
import secrets
from typing import Optional
import logging

from biohacker.deps import get_settings, get_database

logger = logging.getLogger(__name__)


def cors_response(status_code: int, content: dict) -> JSONResponse:
    """Create a JSONResponse with CORS headers for error responses."""
    return JSONResponse(
        status_code=status_code,
        content=content,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "*",
            "Access-Control-Allow-Headers": "*",
        }
    )


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Middleware for API key authentication

    Supports:
    - API key in header (X-API-Key)
    - API key in query param (?api_key=...), for browser redirects
    - Public endpoints (no auth required)
    """

    # Endpoints that don't require authentication
    PUBLIC_PATHS = {
        "/",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/health",
        "/health/ready",
        "/health/live",
        "/health/config",
        # Google redirects here; the signed state identifies the user
        "/api/v1/calendar/google/callback",
    }

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.settings = get_settings()

    async def dispatch(self, request: Request, call_next):
        # Skip auth for public paths
        if request.url.path in self.PUBLIC_PATHS:
            return await call_next(request)

        # Skip auth for OPTIONS (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        api_key = self._extract_api_key(request)

        if not api_key:
            return cors_response(
                status_code=401,
                content={
                    "error": "Unauthorized",
                    "type": "authentication_error",
                    "detail": "Provide API key via X-API-Key header or api_key query parameter"
                }
            )

        user_info = await self._validate_api_key(api_key, request)

        if not user_info:
            return cors_response(
                status_code=401,
                content={
                    "error": "Invalid API key",
                    "type": "authentication_error"
                }
            )

        request.state.user_id = user_info.get("user_id")
        request.state.is_admin = user_info.get("is_admin", False)

        return await call_next(request)

    def _extract_api_key(self, request: Request) -> Optional[str]:
        """Extract API key from request"""
        api_key = request.headers.get(self.settings.api_key_header)
        if api_key:
            return api_key

        return request.query_params.get("api_key")

    async def _validate_api_key(self, api_key: str, request: Request) -> Optional[dict]:
        """
        Validate API key and return user info

        Returns dict with: user_id, is_admin
        """
        if secrets.compare_digest(api_key, self.settings.master_api_key):
            # Frontend proxy: master key plus the signed-in user's id
            user_id = (
                request.headers.get(self.settings.user_id_header)
                or request.query_params.get("user_id")
            )
            if user_id:
                return {"user_id": user_id, "is_admin": False}
            return {"user_id": "admin", "is_admin": True}

        key_hash = hashlib.sha256(api_key.encode()).hexdigest()

        try:
            db = get_database()
            key_doc = await db.api_keys.find_one({"key_hash": key_hash})
        except Exception as e:
            logger.error(f"Error validating API key: {e}")
            return None

        if not key_doc or not key_doc.get("is_active", True):
            return None

        return {
            "user_id": key_doc["user_id"],
            "is_admin": key_doc.get("is_admin", False)
        }


async def get_current_user(request: Request) -> dict:
    """
    FastAPI dependency to get current user from request state

    Use in routes:
        @router.get("/me")
        async def get_me(user: dict = Depends(get_current_user)):
            return user
    """
    if getattr(request.state, "user_id", None) is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    return {
        "user_id": request.state.user_id,
        "is_admin": request.state.is_admin
    }


def create_api_key(user_id: str) -> tuple[str, str]:
    """
    Create a new API key for a user

    Returns: (raw_key, key_hash)
    - raw_key: Give this to the user (only shown once)
    - key_hash: Store this in the database
    """
    raw_key = f"bh_{secrets.token_urlsafe(32)}"
    key_hash = hashlib.sha256(raw_key.encode()).hexdigest()
    return raw_key, key_hash
