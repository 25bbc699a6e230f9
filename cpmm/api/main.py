"""FastAPI application exposing the pool session over HTTP.

Read-only: quotes, previews, pool state and history. Transactions are
signed and sent by the caller's wallet, not by this service.
"""

import logging
import os

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cpmm import __version__
from cpmm.api.endpoints import router
from cpmm.errors import GatewayUnavailable, OperationReverted, PoolNotFound, ReserveInvariantViolation

logger = structlog.get_logger()

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("CPMM_HOST", "0.0.0.0")
PORT = int(os.environ.get("CPMM_PORT", "8000"))
DEBUG = os.environ.get("CPMM_DEBUG", "false").lower() in ("true", "1", "yes")

# Maximum request body size (1 MB)
MAX_REQUEST_SIZE = 1024 * 1024

app = FastAPI(
    title="CPMM pool client",
    description="Quotes, liquidity previews and trade history for constant product pools",
    version=__version__,
)


@app.middleware("http")
async def limit_request_size(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests with body larger than MAX_REQUEST_SIZE."""
    content_length = request.headers.get("content-length")
    if content_length and int(content_length) > MAX_REQUEST_SIZE:
        return JSONResponse(status_code=413, content={"detail": "Request too large"})
    return await call_next(request)


@app.exception_handler(PoolNotFound)
async def pool_not_found(request: Request, exc: PoolNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ReserveInvariantViolation)
async def reserve_invariant_violation(request: Request, exc: ReserveInvariantViolation) -> JSONResponse:
    logger.warning("reserve_invariant_violation", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(OperationReverted)
async def operation_reverted(request: Request, exc: OperationReverted) -> JSONResponse:
    # Routes only read, so the address is not the contract the caller expected
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(GatewayUnavailable)
async def gateway_unavailable(request: Request, exc: GatewayUnavailable) -> JSONResponse:
    logger.warning("gateway_unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def invalid_value(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


app.include_router(router)


@app.get("/health")
async def health() -> dict[str, object]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


def run() -> None:
    """Run the API server.

    Configuration via environment variables:
    - CPMM_HOST: Host to bind to (default: 0.0.0.0)
    - CPMM_PORT: Port to bind to (default: 8000)
    - CPMM_DEBUG: Enable debug logging and reload mode (default: false)
    - CPMM_NETWORK, CPMM_RPC_URL, CPMM_ACCOUNT: see ``cpmm.session``
    """
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if DEBUG else logging.INFO),
    )
    uvicorn.run(
        "cpmm.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
