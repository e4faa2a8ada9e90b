from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.api import reports
from app.core.config import settings
from app.services.report import ReportSessionRegistry
from app.services.sources import create_upstream_client
import logging

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

# Get logger for this module
logger = logging.getLogger(__name__)
logger.info("Starting Community Finance Reports API")

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.upstream_http = create_upstream_client()
    app.state.report_sessions = ReportSessionRegistry()
    yield
    await app.state.upstream_http.aclose()


app = FastAPI(
    title="Community Finance Reports API",
    description="Member activity aggregation and reporting for the community finance dashboard",
    version=VERSION,
    lifespan=lifespan,
    debug=settings.DEBUG,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# Include routers
app.include_router(reports.router)


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Community Finance Reports API", "version": VERSION}


@app.get("/api/health")
async def health_check():
    """Health check endpoint: checks API and upstream connectivity."""
    from datetime import datetime, timezone
    import httpx

    upstream_status = "unreachable"
    upstream_error = None
    try:
        response = await app.state.upstream_http.get("/")
        upstream_status = "connected" if response.status_code < 500 else "error"
    except httpx.HTTPError as e:
        upstream_error = str(e)

    status = "healthy" if upstream_status == "connected" else "degraded"

    return {
        "status": status,
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "api": "ok",
            "upstream": upstream_status,
        },
        **({"upstream_error": upstream_error} if upstream_error else {})
    }
