from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from afip_invoicing.domain.errors import (
    AfipError,
    AuthError,
    NetworkError,
    NotFoundError,
    SequenceError,
    ValidationError,
)
from afip_invoicing.presentation.api.dependencies import get_facade
from afip_invoicing.presentation.api.metrics import ERRORS, registry
from afip_invoicing.presentation.api.routes.health import router as health_router
from afip_invoicing.presentation.api.routes.invoices import router as invoices_router
from afip_invoicing.presentation.api.routes.taxpayers import router as taxpayers_router
from afip_invoicing.presentation.api.routes.tickets import router as tickets_router


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    # Releases the HTTP pool and the ticket database if the facade was ever built
    if get_facade.cache_info().currsize:
        get_facade().close()
        get_facade.cache_clear()


app = FastAPI(title="AFIP Invoicing Gateway", version="0.1.0", lifespan=lifespan)
app.include_router(health_router)
app.include_router(tickets_router)
app.include_router(invoices_router)
app.include_router(taxpayers_router)

# Most specific first; anything else in the AfipError tree is an upstream failure.
_STATUS_BY_ERROR: list[tuple[type[AfipError], int]] = [
    (ValidationError, 422),
    (NotFoundError, 404),
    (SequenceError, 409),
    (NetworkError, 503),
    (AuthError, 502),
]


@app.exception_handler(AfipError)
async def afip_error_handler(request: Request, exc: AfipError) -> JSONResponse:
    status = next((code for kind, code in _STATUS_BY_ERROR if isinstance(exc, kind)), 502)
    ERRORS.labels(kind=type(exc).__name__).inc()
    body: dict[str, object] = {"error": type(exc).__name__, "detail": str(exc), "retryable": exc.retryable}
    if isinstance(exc, ValidationError):
        body["problems"] = exc.problems
    return JSONResponse(status_code=status, content=body)


@app.get("/metrics")
def metrics() -> Response:  # type: ignore[misc]
    data = generate_latest(registry)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
