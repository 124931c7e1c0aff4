"""Main FastAPI application."""
import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from app.settings import settings
from app.api.auth import router as auth_router
from app.api.bookings import router as bookings_router
from app.api.swaps import router as swaps_router
from app.api.proposals import router as proposals_router
from app.api.notifications import router as notifications_router
from app.domain.common.errors import DomainError, ErrorCategory
from app.infra.db import base as db_base
from app.infra.db.base import Base
# Import all models to ensure they're registered with Base
from app.infra.db.models import (  # noqa: F401
    UserModel,
    BookingModel,
    SwapModel,
    AuctionModel,
    ProposalModel,
    SwapTargetModel,
    TargetingHistoryModel,
    NotificationModel,
)
from app.infra.jobs.tasks import sweep_loop
from app.infra.messaging.redis_bus import redis_bus

# Configure logging
logging.basicConfig(
    level=getattr(logging, str(settings.log_level).upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

STATUS_BY_CATEGORY = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.AUTHENTICATION: 401,
    ErrorCategory.AUTHORIZATION: 403,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.CONFLICT: 409,
    ErrorCategory.INTEGRATION: 502,
    ErrorCategory.SERVER: 500,
}

_CATEGORY_BY_STATUS = {
    400: ErrorCategory.VALIDATION,
    401: ErrorCategory.AUTHENTICATION,
    403: ErrorCategory.AUTHORIZATION,
    404: ErrorCategory.NOT_FOUND,
    409: ErrorCategory.CONFLICT,
}


def error_response(status_code: int, code: str, message: str, category: str, headers=None) -> JSONResponse:
    """The single error envelope every failure is rendered in."""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": message, "category": category}},
        headers=headers,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    if db_base.engine is not None:
        try:
            async with db_base.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            # Database might not be ready yet; migrations own the schema anyway
            logger.warning("Could not connect to database during startup: %s", e)

    try:
        await redis_bus.connect()
    except Exception as e:
        logger.warning("Could not connect to Redis during startup: %s", e)

    sweep_task = None
    if settings.auction_sweep_enabled and db_base.AsyncSessionLocal is not None:
        sweep_task = asyncio.create_task(sweep_loop())

    yield

    # Shutdown
    try:
        if sweep_task is not None:
            sweep_task.cancel()
            try:
                await sweep_task
            except asyncio.CancelledError:
                pass
        await redis_bus.disconnect()
        if db_base.engine is not None:
            await db_base.engine.dispose()
    except asyncio.CancelledError:
        logger.info("Lifespan shutdown cancelled (e.g. Ctrl+C); cleanup attempted.")
        raise


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests and responses."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        logger.info("[REQUEST] %s %s", request.method, request.url.path)
        logger.debug("   Query params: %s", dict(request.query_params))

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            "[RESPONSE] %s %s - %s (%.3fs)",
            request.method, request.url.path, response.status_code, process_time,
        )
        return response


# Add logging middleware AFTER CORS (CORS must be first)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Map a domain error to its category's HTTP status."""
    status_code = STATUS_BY_CATEGORY.get(exc.category, 500)
    if status_code >= 500:
        logger.error("%s %s failed: [%s] %s", request.method, request.url.path, exc.code, exc.message)
    else:
        logger.info("%s %s rejected: [%s] %s", request.method, request.url.path, exc.code, exc.message)
    return error_response(status_code, exc.code, exc.message, exc.category)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed input is a 400 in the common envelope; details are logged."""
    errors = exc.errors()
    logger.warning("[VALIDATION ERROR] %s %s: %d error(s)", request.method, request.url.path, len(errors))
    for i, error in enumerate(errors, 1):
        logger.debug("   Error %d: %s", i, error)
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return error_response(400, "VALIDATION_ERROR", message, ErrorCategory.VALIDATION)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    category = _CATEGORY_BY_STATUS.get(exc.status_code, ErrorCategory.SERVER)
    code = "UNAUTHENTICATED" if exc.status_code == 401 else f"HTTP_{exc.status_code}"
    return error_response(exc.status_code, code, str(exc.detail), category, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return error_response(500, "INTERNAL_ERROR", "Internal server error", ErrorCategory.SERVER)


@app.get("/health")
@app.get(f"{settings.api_prefix}/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": settings.app_version}


# Readiness: config, packages, DB, Redis, optional payment/ledger
@app.get("/ready")
async def readiness():
    """Readiness endpoint: run all checks and return 200 if ready, 503 otherwise."""
    from app.readiness import run_all_checks_async, is_ready
    checks = await run_all_checks_async()
    ready, summary = is_ready(checks)
    if ready:
        return {"ready": True, "checks": summary}
    return JSONResponse(
        status_code=503,
        content={"ready": False, "checks": summary},
    )


app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(bookings_router, prefix=settings.api_prefix)
app.include_router(swaps_router, prefix=settings.api_prefix)
app.include_router(proposals_router, prefix=settings.api_prefix)
app.include_router(notifications_router, prefix=settings.api_prefix)
