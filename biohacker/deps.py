"""
Biohacker - Dependency Injection

Database connections, outbound clients and shared dependencies for FastAPI.
Supports protocol-based injection for testing.
"""

from typing import Optional, Union
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from functools import lru_cache
import os

import httpx
import openai

from biohacker.calendar_sync.google import GoogleOAuthClient, GoogleCalendarClient
from biohacker.protocols import IDatabase, ILLMClient, IOAuthClient, ICalendarClient


# Global database connection
# Supports both real Motor client and mock implementations
_db_client: Optional[AsyncIOMotorClient] = None
_db: Optional[Union[AsyncIOMotorDatabase, IDatabase]] = None

# Outbound clients
_http: Optional[httpx.AsyncClient] = None
_llm: Optional[ILLMClient] = None
_oauth: Optional[IOAuthClient] = None
_calendar: Optional[ICalendarClient] = None


class Settings:
    """Application settings from environment"""

    # Database
    mongodb_url: str = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
    mongodb_database: str = os.getenv("MONGODB_DATABASE", "biohacker")

    # API Keys
    api_key_header: str = "X-API-Key"
    user_id_header: str = "X-User-Id"
    master_api_key: str = os.getenv("BIOHACKER_MASTER_KEY", "dev-key-change-me")

    # LLM Configuration (supports OpenAI or Ollama)
    llm_provider: str = os.getenv("LLM_PROVIDER", "openai")  # "openai" or "ollama"
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o")
    extraction_model: str = os.getenv("EXTRACTION_MODEL", "gpt-4o-mini")

    # Ollama (local LLM)
    ollama_url: str = os.getenv("OLLAMA_URL", "http://host.docker.internal:11434")
    ollama_model: str = os.getenv("OLLAMA_MODEL", "llama3.2")

    # Google Calendar OAuth
    google_client_id: str = os.getenv("GOOGLE_OAUTH_CLIENT_ID", "")
    google_client_secret: str = os.getenv("GOOGLE_OAUTH_CLIENT_SECRET", "")

    # Frontend (OAuth redirects land here) and this API's public URL
    app_url: str = os.getenv("APP_URL", "http://localhost:3001")
    api_url: str = os.getenv("API_URL", "http://localhost:8000")

    # Outbound HTTP
    http_timeout: float = float(os.getenv("HTTP_TIMEOUT", "30"))

    @property
    def google_redirect_uri(self) -> str:
        return f"{self.api_url}/api/v1/calendar/google/callback"

    @property
    def llm_model(self) -> str:
        return self.ollama_model if self.llm_provider == "ollama" else self.openai_model


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


async def init_database():
    """Initialize database connection"""
    global _db_client, _db

    settings = get_settings()
    _db_client = AsyncIOMotorClient(settings.mongodb_url)
    _db = _db_client[settings.mongodb_database]

    await _create_indexes(_db)


async def _create_indexes(db: AsyncIOMotorDatabase):
    """Create necessary database indexes"""
    # Users & API keys
    await db.users.create_index("user_id", unique=True)
    await db.api_keys.create_index("key_hash", unique=True)
    await db.api_keys.create_index("user_id")

    # Cycles
    await db.cycles.create_index("cycle_id", unique=True)
    await db.cycles.create_index([("user_id", 1), ("status", 1)])
    await db.cycles.create_index([("user_id", 1), ("start_date", -1)])

    # Dose events - dose_id is the (cycle, date, time) composite key
    await db.dose_events.create_index("dose_id", unique=True)
    await db.dose_events.create_index([("user_id", 1), ("scheduled_date", 1)])
    await db.dose_events.create_index([("cycle_id", 1), ("scheduled_date", 1)])

    # Calendar connections - one per user and provider
    await db.calendar_connections.create_index([("user_id", 1), ("provider", 1)], unique=True)

    # Lab reports
    await db.lab_reports.create_index("report_id", unique=True)
    await db.lab_reports.create_index([("user_id", 1), ("test_date", 1)])


async def close_database():
    """Close database connection"""
    global _db_client
    if _db_client:
        _db_client.close()


def get_database() -> Union[AsyncIOMotorDatabase, IDatabase]:
    """Get database instance for dependency injection.

    Returns either a real AsyncIOMotorDatabase or a mock IDatabase.
    """
    if _db is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _db


def set_database(db: Union[AsyncIOMotorDatabase, IDatabase]) -> None:
    """Set database instance for testing."""
    global _db
    _db = db


def init_clients():
    """Create the shared HTTP client and the provider clients built on it"""
    global _http, _llm, _oauth, _calendar

    settings = get_settings()
    _http = httpx.AsyncClient(timeout=settings.http_timeout)

    if settings.llm_provider == "ollama":
        _llm = openai.AsyncOpenAI(base_url=f"{settings.ollama_url}/v1", api_key="ollama")
    else:
        _llm = openai.AsyncOpenAI(api_key=settings.openai_api_key)

    _oauth = GoogleOAuthClient(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        redirect_uri=settings.google_redirect_uri,
        http_client=_http,
    )
    _calendar = GoogleCalendarClient(http_client=_http)


async def close_clients():
    """Close the shared HTTP client"""
    global _http
    if _http:
        await _http.aclose()
        _http = None


def get_llm_client() -> ILLMClient:
    if _llm is None:
        raise RuntimeError("LLM client not initialized. Call init_clients() first.")
    return _llm


def set_llm_client(client: ILLMClient) -> None:
    """Set LLM client for testing."""
    global _llm
    _llm = client


def get_oauth_client() -> IOAuthClient:
    if _oauth is None:
        raise RuntimeError("OAuth client not initialized. Call init_clients() first.")
    return _oauth


def get_calendar_client() -> ICalendarClient:
    if _calendar is None:
        raise RuntimeError("Calendar client not initialized. Call init_clients() first.")
    return _calendar


def set_calendar_clients(oauth: IOAuthClient, calendar: ICalendarClient) -> None:
    """Set OAuth and calendar clients for testing."""
    global _oauth, _calendar
    _oauth = oauth
    _calendar = calendar


def reset_for_testing() -> None:
    """Reset all global state for testing.

    Call this in test fixtures to ensure clean state between tests.
    """
    global _db_client, _db, _http, _llm, _oauth, _calendar
    _db_client = None
    _db = None
    _http = None
    _llm = None
    _oauth = None
    _calendar = None
    get_settings.cache_clear()
