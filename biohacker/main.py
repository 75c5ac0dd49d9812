"""
Biohacker - FastAPI Application

Main entry point for the API layer.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import os

from biohacker import __version__
from biohacker.routes import calendar, cycles, health, insights
from biohacker.middleware.auth import AuthMiddleware
from biohacker.deps import init_database, close_database, init_clients, close_clients

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager"""
    # Startup
    logger.info("Starting Biohacker API...")
    await init_database()
    logger.info("Database initialized")
    init_clients()
    logger.info("HTTP and LLM clients initialized")
    yield
    # Shutdown
    logger.info("Shutting down Biohacker API...")
    await close_clients()
    await close_database()


app = FastAPI(
    title="Biohacker",
    description="Peptide cycle tracking: dose schedules, labs, insights and calendar sync",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS origins configuration
# In production, set CORS_ORIGINS env var to comma-separated allowed origins
CORS_ORIGINS_ENV = os.getenv("CORS_ORIGINS", "")
if CORS_ORIGINS_ENV:
    CORS_ORIGINS = [origin.strip() for origin in CORS_ORIGINS_ENV.split(",") if origin.strip()]
else:
    # Development: the Next.js frontend
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3001",
    ]

logger.info(f"CORS origins configured: {CORS_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Authentication middleware
app.add_middleware(AuthMiddleware)


# Exception handlers
@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=400,
        content={"error": str(exc), "type": "validation_error"}
    )


@app.exception_handler(PermissionError)
async def permission_error_handler(request: Request, exc: PermissionError):
    return JSONResponse(
        status_code=403,
        content={"error": str(exc), "type": "permission_error"}
    )


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(cycles.router, prefix="/api/v1", tags=["Cycles"])
app.include_router(calendar.router, prefix="/api/v1", tags=["Calendar"])
app.include_router(insights.router, prefix="/api/v1", tags=["Insights"])


@app.get("/")
async def root():
    """Root endpoint - API info"""
    return {
        "name": "Biohacker",
        "version": __version__,
        "status": "operational",
        "docs": "/docs"
    }
