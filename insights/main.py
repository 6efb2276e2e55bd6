"""Meeting Insights web application."""
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from insights.cal.tokens import RefreshLocks
from insights.core.config import settings
from insights.core.database import create_db_and_tables
from insights.core.errors import AppError, ValidationError, flatten_validation_error
from insights.routes import auth, bookings

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again later."

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    filename=settings.log_file or None,
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    # Startup
    logger.info("Starting Meeting Insights application")
    create_db_and_tables()
    app.state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds)
    )
    yield
    # Shutdown
    await app.state.http_client.aclose()
    logger.info("Meeting Insights application shut down")


app = FastAPI(
    title=settings.app_name,
    description="Analytics API over Cal.com bookings",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.refresh_locks = RefreshLocks()

# Configure CORS for external access
origins = (
    ["*"]
    if settings.allowed_origins == "*"
    else [o.strip() for o in settings.allowed_origins.split(",")]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(bookings.router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """
    Render an ``AppError`` as ``{code, message, details}``.

    Client errors keep their message and details. Server-side errors get a
    generic message, with the real one and the details only in debug mode.
    """
    if exc.is_client_error:
        logger.info(f"{request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
        content = exc.to_dict()
    else:
        logger.error(f"{request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
        if settings.debug:
            content = exc.to_dict()
        else:
            content = {"code": exc.code, "message": GENERIC_ERROR_MESSAGE}
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = ValidationError("Invalid request.", details=flatten_validation_error(exc))
    return await app_error_handler(request, error)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}")
    content = {"code": "INTERNAL_ERROR", "message": GENERIC_ERROR_MESSAGE}
    if settings.debug:
        content["details"] = {"error": repr(exc)}
    return JSONResponse(status_code=500, content=content)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}
