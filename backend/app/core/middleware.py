"""Middleware configuration for FastAPI application"""
import logging
import time
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.security import log_api_access

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")


def get_allowed_origins():
    """Get list of allowed CORS origins"""
    allowed_origins = [settings.APP_URL]
    if settings.ENVIRONMENT == "development":
        allowed_origins.extend([
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ])
    return allowed_origins


def setup_cors_middleware(app):
    """Setup CORS middleware for FastAPI app"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


async def access_log_middleware(request: Request, call_next):
    """Log every API request with its status and latency"""
    session_id = request.cookies.get("session_id")
    status_code = 500
    error = None
    started = time.perf_counter()

    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    except Exception as e:
        error = str(e)
        security_logger.error(f"Request failed before a response was produced: {error}", exc_info=True)
        raise
    finally:
        if request.url.path not in ("/metrics", "/health"):
            log_api_access(
                request, session_id, status_code, error,
                duration_ms=(time.perf_counter() - started) * 1000
            )
