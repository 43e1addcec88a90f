"""
CareVoice Conversation Service - Main FastAPI Application.

Multi-turn conversations between users and an AI voice agent, with
per-conversation analytics (duration, sentiment, intents).
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from carevoice.adapters import ConversationResponder, create_responder
from carevoice.api import TokenVerifier, create_router
from carevoice.config import Settings, get_settings
from carevoice.errors import ConversationServiceError, ErrorCode
from carevoice.models import ErrorResponse, HealthResponse
from carevoice.services import ConversationService, ConversationStore, create_store

logger = structlog.get_logger()

SERVICE_NAME = "carevoice"
SERVICE_VERSION = "1.0.0"


def configure_logging(settings: Settings) -> None:
    """Configure structured logging."""
    logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _error_response(
    status_code: int,
    error: str,
    code: str,
    details: Optional[dict] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, code=code, details=details or None).model_dump(exclude_none=True),
    )


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Map service errors to stable, non-leaking JSON responses."""

    @app.exception_handler(ConversationServiceError)
    async def service_error_handler(request: Request, exc: ConversationServiceError) -> JSONResponse:
        log = logger.bind(path=request.url.path, code=exc.code.value, status_code=exc.status_code)
        if exc.status_code >= 500:
            log.error("request_failed", error=exc.message, details=exc.details)
        else:
            log.info("request_rejected", error=exc.message)

        return _error_response(
            exc.status_code,
            exc.message,
            exc.code.value,
            exc.details if settings.debug else None,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
        logger.info("request_validation_failed", path=request.url.path, fields=fields)
        return _error_response(
            400,
            "Invalid request body",
            ErrorCode.VALIDATION_ERROR.value,
            {"fields": fields},
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return _error_response(429, "Too many requests", ErrorCode.RATE_LIMIT_EXCEEDED.value)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_exception", path=request.url.path, error=str(exc))
        return _error_response(500, "Internal server error", ErrorCode.INTERNAL_ERROR.value)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ConversationStore] = None,
    responder: Optional[ConversationResponder] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use (defaults to environment settings)
        store: Conversation store (defaults to the configured backend)
        responder: AI responder (defaults to the configured provider)
    """
    settings = settings or get_settings()
    configure_logging(settings)

    store = store or create_store(settings)
    responder = responder or create_responder(settings)
    conversation_service = ConversationService(
        store=store,
        responder=responder,
        ai_timeout_seconds=settings.ai_timeout_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        logger.info(
            "starting_carevoice",
            port=settings.port,
            env=settings.environment,
            store=type(store).__name__,
            responder=type(responder).__name__,
        )
        await store.start()

        yield

        logger.info("shutting_down_carevoice")
        await store.close()

    app = FastAPI(
        title="CareVoice Conversation Service",
        description="Conversations with an AI voice agent, with per-conversation analytics",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.conversation_service = conversation_service
    app.state.token_verifier = TokenVerifier(
        settings.jwt_secret,
        settings.jwt_algorithm,
        expires_hours=settings.jwt_expires_hours,
    )

    # Rate limiter
    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter

    register_exception_handlers(app, settings)

    cors_origins = (
        ["*"]
        if settings.cors_origins == "*"
        else [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.cors_origins != "*",
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            service=SERVICE_NAME,
            version=SERVICE_VERSION,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    @app.get("/ready", response_model=HealthResponse, responses={503: {"model": ErrorResponse}}, tags=["Health"])
    async def readiness_check():
        """Readiness check endpoint."""
        if not await store.health_check():
            return _error_response(503, "Conversation store not available", ErrorCode.SERVICE_UNAVAILABLE.value)
        if not await responder.is_available():
            return _error_response(503, "AI responder not available", ErrorCode.SERVICE_UNAVAILABLE.value)

        return HealthResponse(
            status="healthy",
            service=SERVICE_NAME,
            version=SERVICE_VERSION,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    app.include_router(
        create_router(
            limiter,
            f"{settings.rate_limit_requests}/{settings.rate_limit_window_seconds}seconds",
        )
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "carevoice.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
    )
