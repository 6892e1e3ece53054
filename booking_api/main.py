import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config
from .dependencies import Container, build_container
from .domain.bookings.router import booking_router, export_router, payment_router, priority_router
from .domain.professionals.router import router as professionals_router
from .domain.slots.availability import seed_dev_slots
from .domain.slots.router import router as slots_router
from .exceptions import BookingAPIError
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def warn_missing_configuration():
    if not (config.RAZORPAY_KEY_ID and config.RAZORPAY_KEY_SECRET):
        logger.warning("⚠️ RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET not set - payments will fail")
    if not config.RAZORPAY_WEBHOOK_SECRET:
        logger.warning("⚠️ RAZORPAY_WEBHOOK_SECRET not set - webhooks will be rejected")
    if not (config.SMTP_USER and config.SMTP_PASS) and not config.RESEND_API_KEY:
        logger.warning("⚠️ No SMTP credentials or RESEND_API_KEY - confirmation emails disabled")
    if not config.EXPORT_API_KEY:
        logger.warning("⚠️ EXPORT_API_KEY not set - admin endpoints are disabled")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    container: Container = app.state.container
    warn_missing_configuration()

    sync_task: Optional[asyncio.Task] = None
    if container.sync.configured:
        sync_task = asyncio.create_task(
            container.sync.run_auto_sync(config.SHEET_SYNC_INTERVAL_MINUTES), name="sheet-auto-sync"
        )
    else:
        seed_dev_slots(container.store)

    yield

    logger.info("Application shutting down...")
    if sync_task is not None:
        sync_task.cancel()
        try:
            await sync_task
        except asyncio.CancelledError:
            pass
    await container.runner.drain(timeout=10)
    await container.runner.cancel_all()


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(BookingAPIError)
    async def booking_error_handler(request: Request, exc: BookingAPIError):
        if exc.status_code >= 500:
            logger.error(f"❌ {request.method} {request.url.path} - {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
            for err in exc.errors()
        ]
        logger.warning(f"Validation error for {request.url.path}: {errors}")
        return JSONResponse(status_code=400, content={"success": False, "errors": errors})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        error = "Resource not found" if exc.status_code == 404 else exc.detail
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": error},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"{request.method} {request.url.path} - Error: {str(exc)}", exc_info=exc)
        message = str(exc) if config.ENVIRONMENT == "development" else "An error occurred. Please try again later."
        return JSONResponse(status_code=500, content={"success": False, "error": message})


def create_app(container: Optional[Container] = None) -> FastAPI:
    app = FastAPI(title="Thee You Space Booking API", version="1.0.0", lifespan=lifespan)
    app.state.container = container or build_container()

    register_exception_handlers(app)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(f"{request.method} {request.url.path} {response.status_code} - {duration_ms:.0f}ms")
        return response

    if config.SECURITY_HEADERS_ENABLED:
        app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
    else:
        logger.warning("Security headers DISABLED - only use in development!")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-API-Key", "X-Razorpay-Signature"],
    )

    app.include_router(booking_router)
    app.include_router(payment_router)
    app.include_router(priority_router)
    app.include_router(professionals_router)
    app.include_router(slots_router)
    app.include_router(export_router)

    @app.get("/health")
    def health(request: Request):
        summary = request.app.state.container.store.status_summary()
        return {
            "status": "ok",
            "environment": config.ENVIRONMENT,
            "slotsLoaded": summary.has_data,
            "availableSlots": summary.available_slots,
        }

    return app


app = create_app()
