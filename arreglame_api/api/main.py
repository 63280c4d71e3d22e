from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from arreglame_api.api.enum_registry import enum_registry
from arreglame_api.core.deps import get_pricing_service, resolve_user_from_token
from arreglame_api.core.errors import (
    BAD_USER_INPUT,
    INTERNAL_SERVER_ERROR,
    TOAST_MESSAGES,
    AppError,
    code_for_status,
    humanize_error_message,
)
from arreglame_api.core.logging import configure_logging, correlation_id_var, user_id_var
from arreglame_api.core.settings import get_app_settings
from arreglame_api.db.run_migrations import main as run_alembic
from arreglame_api.db.seed import seed_all
from arreglame_api.db.session import get_session_maker
from arreglame_api.schemas.common import ApiInfo, EngineStatus, EnumListResponse, ErrorInfo, ErrorResponse, HealthResponse
from arreglame_api.schemas.realtime import WsEnvelope
from arreglame_api.services.pricing import PricingService
from arreglame_api.services.realtime import broadcast_manager

# Routers
from arreglame_api.api.routes.audit import router as audit_router
from arreglame_api.api.routes.auth import router as auth_router
from arreglame_api.api.routes.jobs import router as jobs_router
from arreglame_api.api.routes.notifications import router as notifications_router
from arreglame_api.api.routes.services import router as services_router
from arreglame_api.api.routes.users import router as users_router
from arreglame_api.api.routes.wallet import router as wallet_router
from arreglame_api.api.routes.workers import router as workers_router

# Configure structured logging once at import
configure_logging()
logger = logging.getLogger(__name__)

settings = get_app_settings()

openapi_tags = [
    {"name": "Health", "description": "Liveness check."},
    {"name": "System", "description": "Enum registry and operational endpoints."},
    {"name": "Auth", "description": "Registration, login and tokens."},
    {"name": "Users", "description": "Role switching and worker upgrade."},
    {"name": "Workers", "description": "Worker profiles, location and availability."},
    {"name": "Services", "description": "Service catalog."},
    {"name": "Jobs", "description": "Booking lifecycle, reviews and support tickets."},
    {"name": "Audit", "description": "AI before/after photo audit."},
    {"name": "Notifications", "description": "In-app notifications and push devices."},
    {"name": "Wallet", "description": "Ledger-derived balance and transactions."},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Run migrations and optional seeding on service startup.

    Failures are logged and the app keeps serving; readiness is left to the database.
    """
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            logger.info("Running Alembic migrations: upgrade head")
            # env.py owns its event loop, so it cannot run on this one
            await asyncio.to_thread(run_alembic, ["upgrade", "head"])
            logger.info("Migrations completed.")
        except Exception as exc:
            logger.exception("Migration step failed: %s", exc)

    if settings.AUTO_SEED:
        try:
            logger.info("Running database seeding...")
            await seed_all()
            logger.info("Seeding completed.")
        except Exception as exc:
            logger.exception("Seeding step failed: %s", exc)

    yield
    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=openapi_tags,
    lifespan=lifespan,
)

# CORS - avoid wildcard with credentials
cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
    logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
    cors_allow_credentials = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Enrich request context with correlation_id for logging and error responses.
    Adds 'X-Correlation-ID' to every response.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    token_corr = correlation_id_var.set(corr)
    token_user = user_id_var.set(None)
    request.state.correlation_id = corr

    logger.info("Incoming request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token_corr)
        user_id_var.reset(token_user)

    response.headers["X-Correlation-ID"] = corr
    return response


def _build_error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    title, description = TOAST_MESSAGES.get(code, TOAST_MESSAGES[INTERNAL_SERVER_ERROR])
    if code == BAD_USER_INPUT:
        message = humanize_error_message(message) or description
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(code=code, title=title, message=message or description, details=details),
        correlation_id=getattr(request.state, "correlation_id", None),
        path=request.url.path,
        method=request.method,
        timestamp=datetime.now(tz=timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Domain errors carry their own code and status."""
    if exc.status_code >= 500:
        logger.error("Application error: %s", exc.message)
    else:
        logger.info("Request rejected (%s): %s", exc.code, exc.message)
    return _build_error_response(request, exc.status_code, exc.code, exc.message, exc.details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Global handler for HTTPException to produce a standardized error envelope.
    """
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    return _build_error_response(
        request=request,
        status_code=exc.status_code,
        code=code_for_status(exc.status_code),
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Global handler for request validation errors with a standard structure.
    """
    return _build_error_response(
        request=request,
        status_code=422,
        code=BAD_USER_INPUT,
        message="Validation failed",
        details=exc.errors(),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    return _build_error_response(
        request=request,
        status_code=500,
        code=INTERNAL_SERVER_ERROR,
        message="",
        details=None,
    )


# Build API v1 router and include sub-routers
api_v1 = APIRouter(prefix="/api/v1")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    tags=["Health"],
)
def health_check() -> HealthResponse:
    """
    Basic liveness health check endpoint.

    Returns:
        HealthResponse: status, server time, environment and API version.
    """
    return HealthResponse(
        status="ok",
        message="Servidor operativo",
        timestamp=datetime.now(tz=timezone.utc),
        environment=settings.ENVIRONMENT,
        api=ApiInfo(endpoint="/api/v1", available=True),
        version=settings.APP_VERSION,
    )


# PUBLIC_INTERFACE
@api_v1.get(
    "/enums",
    response_model=EnumListResponse,
    summary="Registered enums",
    description="Names and allowed values of every enum the API accepts or returns.",
    tags=["System"],
)
def list_enums() -> EnumListResponse:
    return EnumListResponse(enums=enum_registry.describe())


# PUBLIC_INTERFACE
@api_v1.get(
    "/pricing/status",
    response_model=EngineStatus,
    summary="Pricing engine status",
    description="Whether the AI pricing engine is configured and which engine new jobs would use.",
    tags=["System"],
)
def pricing_status(pricing: PricingService = Depends(get_pricing_service)) -> EngineStatus:
    return EngineStatus(**pricing.engine_status())


# Include all routers under /api/v1
api_v1.include_router(auth_router)
api_v1.include_router(users_router)
api_v1.include_router(workers_router)
api_v1.include_router(services_router)
api_v1.include_router(jobs_router)
api_v1.include_router(audit_router)
api_v1.include_router(notifications_router)
api_v1.include_router(wallet_router)

# Attach api_v1 to app
app.include_router(api_v1)


async def _authenticate_ws(websocket: WebSocket) -> str | None:
    """Resolve the user id from the 'token' query param; None when invalid."""
    token = websocket.query_params.get("token")
    try:
        async with get_session_maker()() as session:
            user = await resolve_user_from_token(session, token)
    except AppError:
        return None
    return str(user.id)


def _is_ping(message: str) -> bool:
    text = message.strip()
    if text.lower() == "ping":
        return True
    try:
        data = json.loads(text)
    except ValueError:
        return False
    return isinstance(data, dict) and data.get("type") == "ping"


# PUBLIC_INTERFACE
@app.websocket("/ws/notifications")
async def ws_notifications(websocket: WebSocket):
    """
    WebSocket endpoint streaming the user's new notifications.

    Security:
      - Query param 'token' must be a valid access token.
    Messages:
      - Server -> Client: type='notification.received' payload=notification
      - Client -> Server: 'ping' (text) or {"type": "ping"} is answered with 'pong'.
    """
    await websocket.accept()
    user_id = await _authenticate_ws(websocket)
    if user_id is None:
        await websocket.close(code=4401)
        return

    topic = broadcast_manager.notifications_topic(user_id)
    await broadcast_manager.connect(topic, websocket)
    try:
        while True:
            msg = await websocket.receive_text()
            if _is_ping(msg):
                await websocket.send_json(WsEnvelope(type="pong").model_dump(mode="json"))
    except WebSocketDisconnect:
        await broadcast_manager.disconnect(topic, websocket)
    except Exception:
        logger.exception("Error on ws_notifications connection")
        await broadcast_manager.disconnect(topic, websocket)
        await websocket.close()
