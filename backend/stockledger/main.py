"""FastAPI application entry point."""

import json
import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import redis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from stockledger.api.routes import api_router
from stockledger.core.config import settings
from stockledger.core.exceptions import StockLedgerError
from stockledger.core.rate_limit import limiter
from stockledger.core.security import decode_access_token
from stockledger.db.base import Base
from stockledger.db.session import SessionLocal, engine
import stockledger.models  # noqa: F401  registers all tables on Base.metadata

API_VERSION = "1.0.0"

# Paths reachable without a token; every other /api/v1/* path requires one
PUBLIC_EXACT_PATHS = [
    "/",
    "/health",
    "/health/ready",
]
PUBLIC_PATH_PREFIXES = [
    "/docs",
    "/redoc",
    "/openapi.json",
    f"{settings.api_v1_prefix}/auth/login",
]

# Configure logging - use JSON format in production, human-readable in dev
root_logger = logging.getLogger()
root_logger.setLevel(getattr(logging, settings.log_level))
root_logger.handlers.clear()


class JSONFormatter(logging.Formatter):
    def format(self, record):
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry)


if settings.debug:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
else:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

root_logger.addHandler(handler)
logger = logging.getLogger(__name__)
request_logger = logging.getLogger("requests")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        csp_origins = " ".join(settings.cors_origins_list)
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            f"connect-src 'self' {csp_origins};"
        )
        return response


class AuthEnforcementMiddleware(BaseHTTPMiddleware):
    """Global authentication enforcement middleware.

    All /api/v1/* endpoints require a valid Bearer token (or access_token
    cookie) unless the path is listed as public. Route dependencies still
    load and check the user; this only rejects anonymous traffic early.
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        # Always allow OPTIONS (CORS preflight)
        if request.method == "OPTIONS" or path in PUBLIC_EXACT_PATHS:
            return await call_next(request)
        if any(path.startswith(prefix) for prefix in PUBLIC_PATH_PREFIXES):
            return await call_next(request)

        if path.startswith(f"{settings.api_v1_prefix}/"):
            payload = None
            auth_header = request.headers.get("Authorization", "")
            if auth_header.startswith("Bearer "):
                token = auth_header.split(" ", 1)[1]
                if token:
                    payload = decode_access_token(token)
            # Fall back to cookie if no Bearer or Bearer was invalid
            if payload is None and "access_token" in request.cookies:
                payload = decode_access_token(request.cookies["access_token"])

            if payload is None or not all(payload.get(k) for k in ("sub", "email", "role")):
                return JSONResponse(
                    status_code=401,
                    content={"detail": "Authentication required"},
                    headers={"WWW-Authenticate": "Bearer"},
                )

        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging all HTTP requests and responses."""

    async def dispatch(self, request: Request, call_next):
        # Skip logging for health checks and docs
        if request.url.path in ["/health", "/", "/docs", "/openapi.json"]:
            return await call_next(request)

        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"

        request_logger.info(f"Request: {request.method} {request.url.path} - Client: {client_ip}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            request_logger.error(
                f"Error: {request.method} {request.url.path} - "
                f"Exception: {str(e)} - Time: {process_time:.3f}s - Client: {client_ip}"
            )
            raise

        process_time = time.time() - start_time
        log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
        request_logger.log(
            log_level,
            f"Response: {request.method} {request.url.path} - "
            f"Status: {response.status_code} - Time: {process_time:.3f}s - Client: {client_ip}"
        )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting Stock Ledger API")

    # Create tables if they don't exist (for SQLite dev)
    # In production with PostgreSQL, use Alembic migrations
    if settings.is_sqlite:
        database = engine.url.database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created (SQLite mode)")

    yield

    logger.info("Shutting down Stock Ledger API")
    engine.dispose()


app = FastAPI(
    title="Stock Ledger API",
    description="Inventory stock movements, stock levels and stock reports",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


async def stock_ledger_error_handler(request: Request, exc: StockLedgerError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Rate limiting setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(StockLedgerError, stock_ledger_error_handler)

# Security headers middleware
app.add_middleware(SecurityHeadersMiddleware)

# Authentication enforcement middleware
app.add_middleware(AuthEnforcementMiddleware)

# Request logging middleware
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware - MUST be added last so it runs first (Starlette LIFO order).
# CORS headers are then present on every response, including 401s from
# AuthEnforcementMiddleware.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,  # Cache preflight for 10 minutes
)

# Include API routes
app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/health")
def health_check():
    """Basic liveness check endpoint."""
    return {"status": "healthy", "version": API_VERSION}


@app.get("/health/ready")
def readiness_check():
    """Readiness probe with database and Redis connectivity checks."""
    checks = {"database": "unknown", "redis": "unknown"}

    db = None
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        checks["database"] = "unhealthy"
    finally:
        if db:
            db.close()

    if settings.redis_url:
        try:
            redis.from_url(settings.redis_url, socket_connect_timeout=2).ping()
            checks["redis"] = "healthy"
        except redis.RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            checks["redis"] = "unhealthy"
    else:
        checks["redis"] = "not configured"

    all_healthy = all(c in ("healthy", "not configured") for c in checks.values())
    return JSONResponse(
        status_code=200 if all_healthy else 503,
        content={
            "status": "ready" if all_healthy else "degraded",
            "version": API_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": checks,
        },
    )


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "Stock Ledger API",
        "docs": "/docs",
        "health": "/health",
    }
