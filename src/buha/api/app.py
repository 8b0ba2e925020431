from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from buha.api.config import load_api_config
from buha.api.errors import ApiError
from buha.api.routes_public import public_router
from buha.api.structured_logging import RequestLogMiddleware
from buha.runtime.errors import ApplyError
from buha.runtime.executor_boot import build_executor as _build_executor


def build_executor():
    """Build an AccrualExecutor for API runtime.

    This wrapper exists so tests can monkeypatch `buha.api.app.build_executor`
    without reaching into runtime modules.
    """
    return _build_executor()


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load engine config + attach executor
      - False: keep lightweight; callers attach app.state.executor themselves
    """
    mode = os.environ.get("BUHA_MODE", "prod").strip().lower()

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        yield
        ex = getattr(app.state, "executor", None)
        if ex is not None and hasattr(ex, "close"):
            ex.close()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(
            title="BuhaToken Accrual Engine",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=_lifespan,
        )
    else:
        app = FastAPI(title="BuhaToken Accrual Engine", lifespan=_lifespan)

    app.state.cfg = load_api_config()

    if boot_runtime:
        app.state.executor = build_executor()
    else:
        app.state.executor = None

    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_json())

    @app.exception_handler(ApplyError)
    async def _apply_error(_request: Request, exc: ApplyError) -> JSONResponse:
        err = ApiError.from_apply_error(exc)
        return JSONResponse(status_code=err.status_code, content=err.to_json())

    app.add_middleware(RequestLogMiddleware)

    app.include_router(public_router)

    return app


def app_factory() -> FastAPI:
    """Entry point for `uvicorn --factory buha.api.app:app_factory`."""
    return create_app(boot_runtime=True)
