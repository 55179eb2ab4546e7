from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
import logging
import uuid

from . import __version__
from .config import settings
from .database import create_tables
from .exceptions import EngineError
from .utils.logging_config import setup_logging, set_request_context, clear_request_context
from .utils.rate_limiter import limiter

from .routers import availability, block_periods, rules, reservations, health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(level=settings.log_level, json_format=settings.log_json)

    logger.info(f"Starting roomstay {__version__} ({settings.environment})")
    logger.info(f"CORS origins: {settings.cors_origins}")

    create_tables()

    yield

    logger.info("Shutting down roomstay")


# Create FastAPI app
app = FastAPI(
    title="Roomstay - Availability & Reservation Engine",
    description="Room availability, pricing rules, block periods and reservation claims",
    version=__version__,
    lifespan=lifespan
)

# Rate limiter state
app.state.limiter = limiter


# ================================
# CORS MIDDLEWARE - MUST BE FIRST!
# ================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id, request.headers.get("X-Company-Id"))
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestIdMiddleware)


# ================================
# ERROR HANDLERS
# ================================

@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    """
    ValidationError -> 422, NotFound -> 404, Conflict -> 409
    (retryable: true for transient store errors), InvariantViolation -> 500
    """
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"error": "RateLimitExceeded", "detail": "Too many requests, try again later", "retryable": True}
    )


# Include routers
app.include_router(health.router)
app.include_router(availability.router)
app.include_router(block_periods.router)
app.include_router(rules.router)
app.include_router(reservations.router)


@app.get("/")
async def root():
    return {
        "message": "Roomstay availability engine",
        "version": __version__,
        "docs": "/docs",
        "status": "running",
    }
