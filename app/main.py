from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import asyncio
import uuid

from .config import settings
from .database import create_tables, SessionLocal
from .schemas.common import envelope, error_envelope
from .utils.errors import TaskflowError
from .utils.logging_config import clear_request_context, get_logger, set_request_context, setup_logging
from .utils.rate_limiter import limiter

from .routers import tasks, daily_plan, approvals, reports, notifications, outbox, health

logger = get_logger("app.main")


async def run_outbox_worker(stop_event: asyncio.Event):
    """Deliver queued notifications until the app shuts down"""
    from .services.notification_outbox import OutboxProcessor

    poll_interval = settings.worker_poll_interval
    batch_size = settings.worker_batch_size
    logger.info(f"Outbox worker started (interval: {poll_interval}s, batch: {batch_size})")

    while not stop_event.is_set():
        worker_db = SessionLocal()
        try:
            delivered, failed = OutboxProcessor(worker_db).process_batch(limit=batch_size)
            if delivered + failed > 0:
                logger.info(f"Outbox: {delivered} delivered / {failed} failed")
        except Exception as e:
            logger.error(f"Outbox worker error: {e}")
        finally:
            worker_db.close()

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=poll_interval)
        except asyncio.TimeoutError:
            pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(level=settings.log_level, json_format=settings.log_json)

    logger.info("Starting taskflow-backend")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"CORS Origins: {settings.cors_origins}")

    create_tables()

    stop_event = asyncio.Event()
    worker_task = None
    if settings.outbox_enabled:
        worker_task = asyncio.create_task(run_outbox_worker(stop_event))
    else:
        logger.warning("Notification outbox worker disabled; queued notifications wait for worker.py")

    yield

    logger.info("Shutting down taskflow-backend")
    stop_event.set()
    if worker_task:
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            pass
        logger.info("Outbox worker stopped")


# Create FastAPI app
app = FastAPI(
    title="Taskflow Backend API",
    description="Task assignment and approval across Director, HOD and Employee roles",
    version="1.0.0",
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


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


# Request ID Middleware
class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response


# Add other middleware AFTER CORS
app.add_middleware(RequestIdMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(SlowAPIMiddleware)


# ================================
# ERROR HANDLERS -> response envelope
# ================================

@app.exception_handler(TaskflowError)
async def taskflow_error_handler(request: Request, exc: TaskflowError):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.message, exc.errors)
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        errors.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return JSONResponse(
        status_code=400,
        content=error_envelope("Validation failed", errors)
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(str(exc.detail))
    )


# Rate limit handler
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content=error_envelope("Too many requests, please try again later", [str(exc.detail)])
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=error_envelope("Internal server error")
    )


# Include routers
app.include_router(tasks.router)
app.include_router(daily_plan.router)
app.include_router(approvals.router)
app.include_router(reports.router)
app.include_router(notifications.router)
app.include_router(outbox.router)
app.include_router(health.router)


@app.get("")
@app.get("/")
async def root():
    return envelope("Taskflow API is running", {
        "version": "1.0.0",
        "docs": "/docs",
    })
