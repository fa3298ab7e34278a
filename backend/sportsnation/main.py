"""
Sports Nation BD - Backend API
Courier, OTP, notification and analytics services for the storefront
"""
import logging
import time
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables before settings are read
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

import psycopg2
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sportsnation.api import analytics, courier, delivery, notifications, otp, tracking
from sportsnation.core.config import settings
from sportsnation.core.database import DatabaseNotConfigured, get_db_connection_with_retry
from sportsnation.core.rate_limit import RateLimitMiddleware

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION
)

app.add_middleware(RateLimitMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

app.include_router(otp.router)
app.include_router(courier.router)
app.include_router(analytics.router)
app.include_router(notifications.router)
app.include_router(delivery.router)
app.include_router(tracking.router)


@app.get("/")
async def root():
    return {
        "message": f"{settings.STORE_NAME} API",
        "status": "online",
        "version": settings.API_VERSION,
    }


def _check_database() -> dict:
    """Single connection attempt; failures are reported in the result"""
    started = time.perf_counter()
    try:
        conn = get_db_connection_with_retry(max_retries=1)
        conn.close()
    except (psycopg2.Error, DatabaseNotConfigured) as e:
        return {"status": "disconnected", "latency_ms": None, "error": str(e)}
    return {
        "status": "connected",
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "error": None,
    }


@app.get("/health")
async def health():
    """Liveness plus database reachability; 'degraded' when the database is down"""
    database = _check_database()
    return {
        "status": "healthy" if database["status"] == "connected" else "degraded",
        "service": "sportsnation-api",
        "version": settings.API_VERSION,
        "database": database,
    }
