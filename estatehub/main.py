"""
FastAPI application entry point.
Wires the persistence, clock, publish gate and sweep scheduler collaborators
into the application lifespan.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError as PydanticValidationError
import logging

from estatehub.config import settings
from estatehub.database import database, test_database_connection, create_tables, close_db_connection
from estatehub.routers import (
    auth_router,
    listings_router,
    registration_router,
    linking_router,
    admin_router,
    quota_router,
    notifications_router,
)
from estatehub.services.error_handler import ErrorHandlerService
from estatehub.services.quota import PublishGate
from estatehub.services.sweeper import ExpirationSweeper, SweepScheduler
from estatehub.middleware.validation import ValidationMiddleware
from estatehub.utils.clock import system_clock
from estatehub.utils.exceptions import APIException, ServiceUnavailableError

# Configure logging
logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Opens the database, installs the shared collaborators and runs the sweep scheduler.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    database.open()
    if not await test_database_connection():
        logger.error("Failed to connect to database on startup")
    elif settings.is_development or settings.is_testing:
        await create_tables()

    app.state.clock = system_clock
    app.state.publish_gate = PublishGate(system_clock)

    scheduler = None
    if settings.sweeper_enabled:
        sweeper = ExpirationSweeper(
            database.session,
            clock=system_clock,
            gate=app.state.publish_gate,
            settings=settings
        )
        scheduler = SweepScheduler.from_settings(sweeper, settings, clock=system_clock)
        scheduler.start()
    app.state.sweep_scheduler = scheduler

    yield

    logger.info("Shutting down application")
    if scheduler is not None:
        await scheduler.stop()
    await close_db_connection()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Listing lifecycle and quota governance for a real-estate broker.

    ## Features

    * **Listing lifecycle**: pending, approved, active, inactive, rejected and expired listings
    * **Quotas**: listing slots, gold cards and featured slots per professional account
    * **Approval workflows**: role-upgrade registration and agent-to-agency linking
    * **Moderation**: listing review, quota adjustment, expiration sweeps

    ## Authentication

    Use `/api/v1/auth/login` to obtain a JWT token, then send it as `Authorization: Bearer <token>`.
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Authentication", "description": "Sign-up, login and token management"},
        {"name": "Listings", "description": "Listing lifecycle for owners"},
        {"name": "Registration Requests", "description": "Applications for professional roles"},
        {"name": "Linking Requests", "description": "Agent to agency association"},
        {"name": "Moderation", "description": "Admin and sub-admin operations"},
        {"name": "Quota", "description": "Listing, gold-card and featured-slot allowances"},
        {"name": "Notifications", "description": "Owner notifications"},
        {"name": "Health", "description": "System health endpoints"},
    ],
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.add_middleware(
    ValidationMiddleware,
    enable_request_logging=settings.debug or settings.is_development,
)

# Include API routers
app.include_router(auth_router, prefix=settings.api_v1_prefix)
app.include_router(listings_router, prefix=settings.api_v1_prefix)
app.include_router(registration_router, prefix=settings.api_v1_prefix)
app.include_router(linking_router, prefix=settings.api_v1_prefix)
app.include_router(admin_router, prefix=settings.api_v1_prefix)
app.include_router(quota_router, prefix=settings.api_v1_prefix)
app.include_router(notifications_router, prefix=settings.api_v1_prefix)


# Global exception handlers using ErrorHandlerService
@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    """Handle custom API exceptions with structured error responses."""
    return ErrorHandlerService.handle_api_exception(exc, request)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle FastAPI request validation errors with detailed field information."""
    return ErrorHandlerService.handle_validation_error(exc, request)


@app.exception_handler(PydanticValidationError)
async def pydantic_validation_exception_handler(request: Request, exc: PydanticValidationError):
    """Handle Pydantic validation errors with detailed field information."""
    return ErrorHandlerService.handle_validation_error(exc, request)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle database errors with appropriate error responses."""
    return ErrorHandlerService.handle_database_error(exc, request)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle plain HTTP exceptions such as unknown routes."""
    return ErrorHandlerService.handle_http_exception(exc, request)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions with secure error responses."""
    return ErrorHandlerService.handle_unexpected_error(exc, request)


@app.get("/", tags=["Health"])
async def root():
    """Basic API information."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.environment,
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_json": "/openapi.json"
        },
        "api_prefix": settings.api_v1_prefix
    }


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check with database connectivity and publish gate state.
    Used by container health checks and load balancers.
    """
    if not await test_database_connection():
        raise ServiceUnavailableError("Database connection failed")

    gate = getattr(request.app.state, "publish_gate", None)
    scheduler = getattr(request.app.state, "sweep_scheduler", None)
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "connected",
        "publishing_enabled": gate.is_open if gate else True,
        "sweeper_running": scheduler.is_running if scheduler else False,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "estatehub.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
