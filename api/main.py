from __future__ import annotations

import logging
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import router
from core.config import get_settings
from core.errors import (
    AuthorizationError,
    DomainError,
    InvalidState,
    NotAuthenticated,
    NotFound,
)
from core.logging_config import new_request_id, reset_request_id, set_request_id, setup_logging

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[DomainError], int]] = [
    (NotAuthenticated, 401),
    (AuthorizationError, 403),
    (NotFound, 404),
    (InvalidState, 409),
]


def request_log_fields(request: Request, status_code: int, started: float) -> dict[str, object]:
    return {
        "method": request.method,
        "path": request.url.path,
        "status_code": int(status_code),
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client_ip": getattr(request.client, "host", None) or "",
    }


def status_for_error(exc: DomainError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = status_for_error(exc)
    logger.info(
        "domain_error",
        extra={"code": exc.code, "status_code": status_code, "path": request.url.path},
    )
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        status_code=status_code,
        content={"detail": {"code": exc.code, "message": exc.message}},
        headers=headers,
    )


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level, route_server_logs=True)

    app = FastAPI(title="Periodization Scheduler API", version="1.0.0")
    app.add_exception_handler(DomainError, domain_error_handler)
    app.include_router(router)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_and_logging(request: Request, call_next: Callable) -> Response:
        header_name = settings.request_id_header_name or "X-Request-ID"
        request_id = (request.headers.get(header_name) or "").strip() or new_request_id()
        token = set_request_id(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "http_request_error",
                extra=request_log_fields(request, 500, started),
            )
            raise
        else:
            response.headers[header_name] = request_id
            logger.info(
                "http_request",
                extra=request_log_fields(request, response.status_code, started),
            )
            return response
        finally:
            reset_request_id(token)

    return app
