"""FastAPI application entry point"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core import otel
from app.core.config import settings
from app.core.exceptions import CrossPostError
from app.core.logging import setup_logging
from app.core.middleware import access_log_middleware, setup_cors_middleware
from app.db import redis as redis_module
from app.db.session import engine, init_db

# Import routers
from app.api import account, connections, oauth, posts, profile, videos

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    # Startup
    if otel.initialize_tracing():
        if otel.setup_otel_logging():
            logger.info(f"OpenTelemetry fully initialized, exporting to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
        else:
            logger.warning("OpenTelemetry traces initialized but logging setup failed")
        otel.instrument_app(app, engine)
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    logger.info("Testing Redis connection...")
    if redis_module.ping():
        logger.info("Redis connection successful")
    else:
        logger.error("Redis connection failed - every authenticated request will be rejected")

    yield

    # Shutdown
    logger.info("Shutting down...")


# Create FastAPI app
app = FastAPI(
    title="CrossPost Backend",
    description="Upload a video once and publish it to YouTube, TikTok and Instagram",
    version="1.0.0",
    lifespan=lifespan
)

setup_cors_middleware(app)
app.middleware("http")(access_log_middleware)

# Include routers (fixed prefixes first so /api/{platform}/... cannot shadow them)
app.include_router(posts.router)
app.include_router(videos.router)
app.include_router(connections.router)
app.include_router(account.router)
app.include_router(profile.router)
app.include_router(oauth.router)


@app.exception_handler(CrossPostError)
async def crosspost_exception_handler(request: Request, exc: CrossPostError):
    """Expected failures: JSON error body with the error's status code"""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed requests are 400s, rejected before any handler runs"""
    return JSONResponse(
        status_code=400,
        content={"error": "Missing required fields", "detail": jsonable_errors(exc)}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


# Prometheus metrics endpoint
@app.get("/metrics")
def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Health check endpoint
@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
