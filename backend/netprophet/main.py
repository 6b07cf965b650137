"""
backend/netprophet/main.py

Purpose:
    FastAPI application bootstrap: logging, CORS, router wiring, the shared
    ledger HTTP client and the per-session service registry.

Dependencies:
    - netprophet.providers.ledger_api
    - netprophet.services.session_service
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from netprophet.config import settings
from netprophet.exceptions import NetProphetError
from netprophet.middleware.logging import StructuredLoggingMiddleware, setup_logging
from netprophet.providers.ledger_api import HttpLedgerProvider, build_client
from netprophet.services.session_service import SessionRegistry

logger = logging.getLogger("netprophet")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    client = build_client()

    def provider_factory(access_token: Optional[str]) -> HttpLedgerProvider:
        return HttpLedgerProvider(client, access_token=access_token)

    app.state.ledger_client = client
    app.state.sessions = SessionRegistry(provider_factory)
    logger.info("Ledger client ready (%s)", settings.LEDGER_BASE_URL)

    yield

    app.state.sessions.end_all()
    await client.aclose()


app = FastAPI(
    title="NetProphet",
    description="Tennis prediction slip and coin wallet",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Session-ID", "X-Request-ID"],
)

# Structured logging
app.add_middleware(StructuredLoggingMiddleware)

# Routers
from netprophet.routers.form import router as form_router
from netprophet.routers.session import router as session_router
from netprophet.routers.slip import router as slip_router
from netprophet.routers.wallet import router as wallet_router

app.include_router(session_router)
app.include_router(slip_router)
app.include_router(wallet_router)
app.include_router(form_router)


async def netprophet_error_handler(request: Request, exc: NetProphetError):
    level = logging.WARNING if exc.status_code >= 500 else logging.INFO
    logger.log(level, "%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__, "details": exc.details},
    )


_REQUEST_PARTS = {"body", "query", "header", "path"}


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Same envelope as domain errors; field paths without the request-part prefix."""
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in _REQUEST_PARTS]
        errors.append({"field": ".".join(loc) or "request", "message": err.get("msg", "Invalid value.")})
    return JSONResponse(
        status_code=422,
        content={"detail": "Validation error.", "error": "RequestValidationError", "details": {"errors": errors}},
    )


def register_exception_handlers(target: FastAPI) -> None:
    target.add_exception_handler(NetProphetError, netprophet_error_handler)
    target.add_exception_handler(RequestValidationError, validation_error_handler)


register_exception_handlers(app)


@app.get("/health")
async def health(request: Request):
    sessions = getattr(request.app.state, "sessions", None)
    client = getattr(request.app.state, "ledger_client", None)
    return {
        "status": "healthy",
        "sessions": len(sessions) if sessions is not None else 0,
        "ledger_circuit": client.circuit.state if client is not None else None,
    }
