"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.routes import auth, health, routes, schedules, traffic
from .config import Settings, settings as default_settings
from .container import Container, build_container
from .errors import AppError, InternalError, ValidationFailed
from .logging_setup import configure_logging
from .middleware import RequestContextMiddleware

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _error_response(request: Request, status_code: int, error: dict) -> JSONResponse:
    body = dict(error)
    body["request_id"] = _request_id(request)
    return JSONResponse(status_code=status_code, content={"error": body})


def _field_name(location: tuple) -> str:
    parts = [str(part) for part in location]
    if len(parts) > 1 and parts[0] in {"body", "query", "path", "header"}:
        parts = parts[1:]
    return ".".join(parts)


def _install_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        level = logging.WARNING if exc.status_code >= 500 else logging.INFO
        logger.log(
            level,
            exc.message,
            extra={
                "request_id": _request_id(request),
                "path": request.url.path,
                "error_code": exc.code,
            },
        )
        return _error_response(request, exc.status_code, exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = [
            {
                "field": _field_name(tuple(error.get("loc", ()))),
                "message": error.get("msg", ""),
                "type": error.get("type", ""),
            }
            for error in exc.errors()
        ]
        error = ValidationFailed(details=fields)
        return _error_response(request, error.status_code, error.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            error = {"code": "NOT_FOUND", "message": "Endpoint not found"}
        elif exc.status_code == 405:
            error = {"code": "METHOD_NOT_ALLOWED", "message": "Method not allowed"}
        else:
            error = {"code": "HTTP_ERROR", "message": str(exc.detail)}
        return _error_response(request, exc.status_code, error)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception",
            extra={
                "request_id": _request_id(request),
                "path": request.url.path,
                "method": request.method,
                "error_code": InternalError.code,
            },
        )
        error = InternalError().to_dict()
        if not settings.is_production:
            error["details"] = {"exception": type(exc).__name__}
        return _error_response(request, 500, error)


def create_app(
    settings: Optional[Settings] = None,
    container: Optional[Container] = None,
) -> FastAPI:
    settings = settings or default_settings
    container = container or build_container(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"{settings.app_name} {settings.app_version} starting ({settings.environment})")
        yield
        container.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.container = container

    if settings.frontend_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.frontend_allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.add_middleware(RequestContextMiddleware)
    _install_error_handlers(app, settings)

    @app.get("/")
    def root():
        return {
            "service": settings.app_name,
            "status": "running",
            "api_prefix": settings.api_prefix,
            "health": f"{settings.api_prefix}/health",
            "docs": "/docs",
        }

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(auth.router, prefix=settings.api_prefix)
    app.include_router(schedules.router, prefix=settings.api_prefix)
    app.include_router(routes.router, prefix=settings.api_prefix)
    app.include_router(traffic.router, prefix=settings.api_prefix)
    return app


configure_logging(default_settings.log_level)
app = create_app()
