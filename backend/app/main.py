"""FastAPI application factory for the deal relay."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.middleware import LoggingMiddleware, configure_structlog
from app.api.routes import router
from app.checklist.store import build_checklist_store
from app.config.settings import settings
from app.errors import RelayError, truncate

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_structlog()
    store = build_checklist_store(settings)
    app.state.checklist_store = store
    logger.info("checklist_store_ready", backend=settings.checklist_store)
    try:
        yield
    finally:
        store.close()
        logger.info("checklist_store_closed", backend=settings.checklist_store)


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    log_method = logger.warning if exc.status_code < 500 else logger.error
    log_method(
        "relay_error",
        error_type=type(exc).__name__,
        message=exc.message,
        status_code=exc.status_code,
        path=request.url.path,
        cause=str(exc.__cause__) if exc.__cause__ else None,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


_INVALID_BODY_MESSAGES = {
    "/hubspot/update-deal-rates": "Missing dealId or properties",
    "/hubspot/collateral-checklist": "Invalid checklist request",
}


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())[1:]) or "body"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = _INVALID_BODY_MESSAGES.get(request.url.path, "Invalid request")
    body = exc.body
    if isinstance(body, dict) and "dealId" not in body and request.url.path == "/hubspot/collateral-checklist":
        message = "Missing dealId"
    details = truncate(_describe_validation_errors(exc))
    logger.warning("request_invalid", path=request.url.path, message=message, details=details)
    payload = {"error": message}
    if details:
        payload["details"] = details
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=payload)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Server error"},
    )


def create_app() -> FastAPI:
    app = FastAPI(title="Deal Relay", lifespan=lifespan)
    app.add_middleware(LoggingMiddleware)
    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)
