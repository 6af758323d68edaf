"""FastAPI application factory."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from pageaudit.api.middleware import BodyLimitMiddleware
from pageaudit.api.routes import router
from pageaudit.audits.orchestrator import AnalysisOrchestrator
from pageaudit.audits.performance import PerformanceAuditRunner
from pageaudit.audits.scanner import Scanner
from pageaudit.errors import InvalidRequest
from pageaudit.schemas.config import ServiceConfig
from pageaudit.shared.sessions import SessionRegistry

logger = logging.getLogger(__name__)

GENERIC_ERROR = "An unexpected server error occurred during analysis."


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def add_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvalidRequest)
    async def invalid_request_handler(request: Request, exc: InvalidRequest):
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        return _error(status.HTTP_400_BAD_REQUEST, f"Invalid request: {details}")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR)


def create_app(
    config: ServiceConfig | None = None,
    *,
    registry: SessionRegistry | None = None,
    orchestrator: AnalysisOrchestrator | None = None,
) -> FastAPI:
    """Build the app, wiring one registry and one orchestrator into ``app.state``."""
    config = config or ServiceConfig()
    registry = registry or SessionRegistry()
    if orchestrator is None:
        orchestrator = AnalysisOrchestrator(
            config=config,
            scanner=Scanner(config),
            performance=PerformanceAuditRunner(config, registry),
        )

    app = FastAPI(
        title="pageaudit",
        description="Accessibility, responsiveness and performance analysis for web pages.",
        version="0.1.0",
    )
    app.state.config = config
    app.state.registry = registry
    app.state.orchestrator = orchestrator

    add_exception_handlers(app)
    app.add_middleware(BodyLimitMiddleware, max_bytes=config.max_body_bytes)
    app.include_router(router)
    return app
