from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from databricks.sdk.errors import NotFound, PermissionDenied
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dbcomply.api.routers import health_routes, sharing_routes, validation_routes
from dbcomply.api.schemas import ErrorResponse
from dbcomply.core.auth import AuthError
from dbcomply.core.catalog import InvalidAssetIdError
from dbcomply.core.environments import UnknownEnvironmentError
from dbcomply.core.validation import AssetNotFoundError, ComplianceService, build_service
from dbcomply.infra.logging import setup_logging

logger = logging.getLogger("dbcomply.api")


def _error(status: int, error: str, exc: BaseException) -> JSONResponse:
    body = ErrorResponse(error=error, message=str(exc))
    return JSONResponse(status_code=status, content=body.model_dump())


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(UnknownEnvironmentError)
    async def unknown_env(request: Request, exc: UnknownEnvironmentError) -> JSONResponse:
        return _error(404, "Environment not found", exc)

    @app.exception_handler(AssetNotFoundError)
    async def unknown_asset(request: Request, exc: AssetNotFoundError) -> JSONResponse:
        return _error(404, "Asset not found", exc)

    @app.exception_handler(NotFound)
    async def remote_not_found(request: Request, exc: NotFound) -> JSONResponse:
        return _error(404, "Not found", exc)

    @app.exception_handler(InvalidAssetIdError)
    async def invalid_id(request: Request, exc: InvalidAssetIdError) -> JSONResponse:
        return _error(400, "Invalid asset id", exc)

    @app.exception_handler(ValueError)
    async def invalid_input(request: Request, exc: ValueError) -> JSONResponse:
        return _error(400, "Invalid request", exc)

    @app.exception_handler(PermissionDenied)
    async def forbidden(request: Request, exc: PermissionDenied) -> JSONResponse:
        return _error(403, "Permission denied", exc)

    @app.exception_handler(AuthError)
    async def auth_failed(request: Request, exc: AuthError) -> JSONResponse:
        return _error(502, "Authentication failed", exc)

    @app.exception_handler(Exception)
    async def unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error", exc)


def create_app(service: ComplianceService | None = None) -> FastAPI:
    """
    Build the HTTP app around a ComplianceService.

    Without a service one is built from the environment on startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "service", None) is None:
            setup_logging("dbcomply-api")
            app.state.service = build_service()
        logger.info(
            "dbcomply API ready (%d environments)",
            len(app.state.service.environments()),
        )
        try:
            yield
        finally:
            app.state.service.shutdown()
            logger.info("dbcomply API shutdown complete")

    app = FastAPI(
        title="dbcomply",
        description="Catalog asset discovery and data-sharing agreement compliance",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.service = service
    _register_error_handlers(app)
    app.include_router(health_routes.router)
    app.include_router(sharing_routes.router)
    app.include_router(validation_routes.router)
    return app
