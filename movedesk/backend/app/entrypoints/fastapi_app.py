# app/entrypoints/fastapi_app.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..config import settings
from ..db import engine
from ..domain.errors import InvalidTransition, NotFound, SlotConflict, UpstreamUnavailable, ValidationError
from ..models import Base
from .api.routers import appointments, availability, estimates, health, integrations, jobs, pricing

log = logging.getLogger(__name__)

# error class -> HTTP status; the body is always {"success": false, "error": ...}
_ERROR_STATUS: dict[type[Exception], int] = {
    ValidationError: 400,
    NotFound: 404,
    InvalidTransition: 409,
    SlotConflict: 409,
    UpstreamUnavailable: 503,
}


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(levelname)s:%(name)s:%(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _install_error_handlers(app: FastAPI) -> None:
    for exc_cls, status_code in _ERROR_STATUS.items():

        async def _handler(request: Request, exc: Exception, status_code: int = status_code) -> JSONResponse:
            if status_code >= 500:
                log.warning("%s %s -> %s: %s", request.method, request.url.path, status_code, exc)
            return _error_response(status_code, str(exc))

        app.add_exception_handler(exc_cls, _handler)

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        parts = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        return _error_response(400, "; ".join(parts) or "Invalid request")


def create_app() -> FastAPI:
    _configure_logging()
    app = FastAPI(title="MoveDesk - Quotes & Scheduling")

    @app.on_event("startup")
    async def _startup() -> None:
        # Single place where DB tables are created in dev.
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    _install_error_handlers(app)

    # Routers
    app.include_router(health.router)
    app.include_router(estimates.router)
    app.include_router(availability.router)
    app.include_router(appointments.router)
    app.include_router(pricing.router)
    app.include_router(integrations.router)
    app.include_router(jobs.router)

    return app
