"""HTTP surface for on-demand enrichment.

Run with:
    uvicorn enricher.main:app --port 3000
"""

import uuid
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from enricher.api.routes import health, products
from enricher.config import settings
from enricher.logging import configure_logging
from enricher.models.contracts import ErrorResponse

configure_logging(settings)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Share one HTTP connection pool across requests."""
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        app.state.http_client = client
        yield


app = FastAPI(
    title="Catalog Enricher API",
    version=health.VERSION,
    docs_url="/docs",
    redoc_url=None,
    lifespan=lifespan,
)


def _error_response(request: Request, status_code: int, body: ErrorResponse) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content=body.model_dump())
    response.headers["X-Request-ID"] = getattr(
        request.state, "request_id", request.headers.get("X-Request-ID", "")
    )
    return response


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Bind a request ID into log context and echo it in X-Request-ID."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Flatten pydantic errors into the single ErrorResponse shape."""
    messages = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}")
    return _error_response(
        request,
        422,
        ErrorResponse(error="validation_error", message="; ".join(messages), retryable=False),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return _error_response(
        request,
        500,
        ErrorResponse(
            error="internal_error", message="An unexpected error occurred", retryable=True
        ),
    )


app.include_router(health.router)
app.include_router(products.router, prefix="/api/v1")
