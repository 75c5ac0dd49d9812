"""
Biohacker - Health Check Endpoints

Standard health check endpoints for monitoring and orchestration.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import os

from biohacker import __version__
from biohacker.deps import get_database, get_settings
from biohacker.models.documents import utcnow

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check - always returns OK if API is running"""
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "version": __version__,
    }


@router.get("/health/ready")
async def readiness_check():
    """
    Readiness check - verifies the database is reachable

    Returns 200 if ready to serve traffic, 503 otherwise.
    """
    checks = {
        "database": False,
        "timestamp": utcnow().isoformat()
    }

    try:
        db = get_database()
        await db.command("ping")
        checks["database"] = True
    except Exception as e:
        checks["database_error"] = str(e)

    all_healthy = all(v for k, v in checks.items() if isinstance(v, bool))
    checks["status"] = "ready" if all_healthy else "not_ready"

    if not all_healthy:
        return JSONResponse(status_code=503, content=checks)

    return checks


@router.get("/health/live")
async def liveness_check():
    """Liveness check - the process is up and serving"""
    return {
        "status": "alive",
        "timestamp": utcnow().isoformat()
    }


@router.get("/health/config")
async def config_check():
    """
    Config check - shows if required environment variables are configured.

    Does NOT reveal actual values, just whether they are set.
    """
    settings = get_settings()

    return {
        "timestamp": utcnow().isoformat(),
        "config": {
            "master_key_configured": settings.master_api_key != "dev-key-change-me",
            "mongodb_configured": "localhost" not in settings.mongodb_url,
            "llm_provider": settings.llm_provider,
            "openai_configured": bool(settings.openai_api_key),
            "google_oauth_configured": bool(settings.google_client_id and settings.google_client_secret),
            "google_redirect_uri": settings.google_redirect_uri,
        },
        "env_vars_present": {
            "BIOHACKER_MASTER_KEY": bool(os.getenv("BIOHACKER_MASTER_KEY")),
            "MONGODB_URL": bool(os.getenv("MONGODB_URL")),
            "OPENAI_API_KEY": bool(os.getenv("OPENAI_API_KEY")),
            "GOOGLE_OAUTH_CLIENT_ID": bool(os.getenv("GOOGLE_OAUTH_CLIENT_ID")),
            "GOOGLE_OAUTH_CLIENT_SECRET": bool(os.getenv("GOOGLE_OAUTH_CLIENT_SECRET")),
        }
    }
