"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text

from config.settings import settings
from src.pp_common.database import engine
from src.pp_common.errors import (
    AppError,
    InternalError,
    PayloadValidationError,
    format_validation_errors,
)
from src.pp_common.response import error_response
from src.pp_gateway.identity.dependencies import close_identity_client, open_identity_client
from src.pp_gateway.middleware.request_log import RequestLogMiddleware
from src.pp_offer.api.router import router as offer_router
from src.pp_order.api.router import router as order_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, open identity client. Shutdown: dispose both."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await open_identity_client(app)
    yield
    # Shutdown
    await close_identity_client(app)
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


def _error_json(exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, exc.errors)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(exclude_none=True),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(
            "%s %s failed: %s (%s)",
            request.method, request.url.path, type(exc).__name__, getattr(exc, "detail", ""),
        )
    return _error_json(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _error_json(PayloadValidationError(format_validation_errors(exc.errors())))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("%s %s: unhandled error", request.method, request.url.path)
    return _error_json(InternalError())


app.include_router(offer_router, prefix="/api/v1")
app.include_router(order_router, prefix="/api/v1")

app.mount(
    settings.UPLOAD_URL_PREFIX,
    StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
    name="uploads",
)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
