"""
Application factory.

``create_app`` wires a session factory, settings and clock into
``app.state`` so the dependencies in ``custody_api.deps`` can build
request-scoped services.  ``CustodyKernelError`` subclasses map to
``{"code", "detail"}`` bodies with the exception's ``http_status``;
malformed requests get the same body as a 400 ``INVALID_INPUT``.
"""

from __future__ import annotations

import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from custody_api.routers import assignments, documents, return_batches, transfers
from custody_config import CustodySettings, get_settings
from custody_kernel.db.engine import get_session_factory, init_engine_from_url
from custody_kernel.domain.clock import Clock, SystemClock
from custody_kernel.exceptions import CustodyKernelError
from custody_kernel.logging_config import LogContext, configure_logging, get_logger
from custody_kernel.services.notification_service import NotificationService

logger = get_logger("api.app")


def create_app(
    session_factory: sessionmaker[Session] | None = None,
    settings: CustodySettings | None = None,
    clock: Clock | None = None,
    notification_service: NotificationService | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(level=settings.log_level)
    if session_factory is None:
        init_engine_from_url(
            settings.database.url,
            echo=settings.database.echo,
            pool_size=settings.database.pool_size,
            max_overflow=settings.database.max_overflow,
        )
        session_factory = get_session_factory()

    app = FastAPI(title="Custody Engine", version="0.1.0")
    app.state.session_factory = session_factory
    app.state.settings = settings
    app.state.clock = clock or SystemClock()
    app.state.notification_service = notification_service

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        correlation_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            actor_id=request.headers.get("X-User-Id"),
            office_id=request.headers.get("X-Office-Id"),
        ):
            response = await call_next(request)
        response.headers["X-Request-Id"] = correlation_id
        return response

    @app.exception_handler(CustodyKernelError)
    async def custody_error_handler(request: Request, exc: CustodyKernelError) -> JSONResponse:
        log = logger.error if exc.http_status >= 500 else logger.info
        log(
            "request_failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "code": exc.code,
                "http_status": exc.http_status,
            },
        )
        return JSONResponse(
            status_code=exc.http_status,
            content={"code": exc.code, "detail": str(exc)},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "invalid request")
        detail = f"{location}: {message}" if location else message
        logger.info(
            "request_failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "code": "INVALID_INPUT",
                "http_status": 400,
                "error_count": len(errors),
            },
        )
        return JSONResponse(status_code=400, content={"code": "INVALID_INPUT", "detail": detail})

    app.include_router(assignments.router, prefix="/assignments", tags=["assignments"])
    app.include_router(transfers.router, prefix="/transfers", tags=["transfers"])
    app.include_router(return_batches.router, prefix="/return-batches", tags=["return-batches"])
    app.include_router(documents.router, prefix="/documents", tags=["documents"])

    logger.info("api_app_created", extra={"store_code": settings.head_office_store_code})
    return app
