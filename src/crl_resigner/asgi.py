"""
FastAPI + Uvicorn ASGI application exposing the resign operation.

Endpoints:
  POST /issuer/{issuer_ref}/resign-crls   combine and resign CRLs
  GET  /health                            liveness (issuer store configured)
  GET  /info                              application metadata

The pipeline is synchronous and CPU-bound (signature checks, signing), so
each request runs it in a worker thread. A Cancellation token carries the
request deadline into that thread, so a request that overruns
RESIGN__TIMEOUT_SECONDS stops at its next stage boundary. A client
disconnect does not cancel the handler; only the deadline, or the request
task itself being cancelled (server shutdown), raises the token.

Entry point for production: uvicorn crl_resigner.asgi:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from railway import ErrorCode, FailureDescription
from railway.http_support import ErrorResponse, build_fastapi_response
from railway.result import Result

from crl_resigner.config import AppSettings, ResignSettings
from crl_resigner.domain.cancellation import Cancellation
from crl_resigner.domain.models import OutputCRL, ResignRequest
from crl_resigner.domain.ports import IssuerResolver
from crl_resigner.main import configure_structlog, create_issuer_store
from crl_resigner.pipeline import run_resign_pipeline, validate_resign_request

# ─────────────────────── Global State ───────────────────────
# Set during app startup; replaced directly in tests.

_issuer_resolver: IssuerResolver | None = None
_resign_settings: ResignSettings = ResignSettings()
_error_message: str | None = None
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    FastAPI lifespan context manager — runs on startup and shutdown.

    Startup: load settings, configure logging, create the issuer store.
    """
    global _issuer_resolver, _resign_settings, _error_message

    log.info("asgi.startup")

    try:
        settings = AppSettings()
    except Exception as e:
        _error_message = f"Configuration error: {e}"
        log.error("asgi.startup_error", error=_error_message)
        raise

    configure_structlog(settings.log_level)
    _resign_settings = settings.resign
    _issuer_resolver = create_issuer_store(settings)

    log.info(
        "asgi.startup_complete",
        issuers_dir=str(settings.issuers.directory),
        default_issuer=settings.issuers.default_issuer,
        timeout_seconds=settings.resign.timeout_seconds,
    )

    yield

    log.info("asgi.shutdown_complete")


# ─────────────────────── FastAPI Application ───────────────────────

app = FastAPI(
    title="crl-resigner",
    description="Combine CRLs signed by one issuer and resign them as a single CRL",
    version="0.1.0",
    lifespan=lifespan,
)


class ResignCrlsBody(BaseModel):
    """JSON body of POST /issuer/{issuer_ref}/resign-crls."""

    crl_number: int = Field(description="Sequence number written to the CRL Number extension")
    delta_crl_base_number: int = Field(
        default=-1,
        description="Base CRL number for a Delta CRL Indicator; -1 adds no indicator",
    )
    next_update: str | None = Field(
        default=None,
        description="How long the generated CRL is valid, e.g. '72h'",
    )
    crls: list[str] = Field(description="PEM encoded CRLs originally signed by the issuer")
    format: str = Field(default="pem", description="'pem' or 'der' (base64 encoded)")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed bodies in the same shape as pipeline validation errors."""
    details = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'][1:])}: {err['msg']}" for err in exc.errors()
    )
    failure = FailureDescription(ErrorCode.VALIDATION_ERROR, details or "invalid request body")
    return JSONResponse(status_code=400, content=ErrorResponse.from_failure(failure).to_dict())


def _to_body(output: OutputCRL) -> dict[str, Any]:
    return {"crl": output.crl, "warnings": list(output.warnings)}


def _log_failure(issuer_ref: str, failure: FailureDescription) -> None:
    if failure.code.is_internal:
        log.error(
            "http.resign_failed",
            issuer_ref=issuer_ref,
            error_code=failure.code.value,
            error=failure.message,
            exc_info=failure.exception,
        )
    else:
        log.info("http.resign_rejected", issuer_ref=issuer_ref, error_code=failure.code.value, error=failure.message)


@app.post("/issuer/{issuer_ref}/resign-crls")
async def resign_crls(issuer_ref: str, body: ResignCrlsBody) -> JSONResponse:
    """
    Combine the given CRLs and sign the result with the referenced issuer.

    Returns 200 with {"crl": ..., "warnings": [...]} on success.
    Returns 400 for invalid fields or CRLs, 404 for unknown issuers,
    504 when the request deadline expires, 500 (opaque) for internal faults.
    Returns 503 if the issuer store is not initialized yet.
    """
    resolver = _issuer_resolver
    if resolver is None:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "reason": "Issuer store not initialized"},
        )

    settings = _resign_settings
    request = validate_resign_request(
        issuer_ref=issuer_ref,
        crl_number=body.crl_number,
        crls=body.crls,
        delta_crl_base_number=body.delta_crl_base_number,
        next_update=settings.default_next_update if body.next_update is None else body.next_update,
        format=body.format,
    )

    cancellation = Cancellation.with_timeout(settings.timeout_seconds)
    tolerance = timedelta(seconds=settings.revocation_time_tolerance_seconds)

    def _run(validated: ResignRequest) -> Result[OutputCRL]:
        return run_resign_pipeline(validated, resolver, cancellation=cancellation, tolerance=tolerance)

    if request.is_success():
        try:
            result = await asyncio.to_thread(_run, request.value())
        except asyncio.CancelledError:
            cancellation.cancel()
            log.info("http.resign_cancelled", issuer_ref=issuer_ref)
            raise
    else:
        result = Result.failure_from(request.error())

    result.peek_failure(lambda failure: _log_failure(issuer_ref, failure))
    return build_fastapi_response(result.map(_to_body))


@app.get("/health")
async def health() -> JSONResponse:
    """Liveness probe — 200 once the issuer store is configured, 503 otherwise."""
    if _error_message:
        return JSONResponse(status_code=503, content={"status": "unhealthy", "error": _error_message})
    if _issuer_resolver is None:
        return JSONResponse(status_code=503, content={"status": "unhealthy", "reason": "issuer store not initialized"})
    return JSONResponse(status_code=200, content={"status": "healthy"})


@app.get("/info")
async def info() -> dict[str, Any]:
    """Application metadata, for debugging and monitoring."""
    return {
        "name": "crl-resigner",
        "version": "0.1.0",
        "issuer_store_ready": _issuer_resolver is not None,
        "default_next_update": _resign_settings.default_next_update,
        "has_error": _error_message is not None,
    }


if __name__ == "__main__":
    # For local testing: python -m uvicorn crl_resigner.asgi:app --reload
    import uvicorn

    uvicorn.run(
        "crl_resigner.asgi:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info",
    )
