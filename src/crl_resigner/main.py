"""
Application entry point — wires dependencies and starts the HTTP server.

Composition root: creates the concrete issuer store from settings and hands
it to the ASGI app. This is the ONLY place where concrete adapters are
instantiated; the pipeline depends on the IssuerResolver protocol.

Responsibilities:
  1. Configure structlog for structured logging
  2. Load and validate configuration from environment
  3. Create the file-backed issuer store
  4. Run the ASGI app under uvicorn
"""

from __future__ import annotations

import logging
import sys

import structlog

from crl_resigner.adapters.issuer_store import FileIssuerStore
from crl_resigner.config import AppSettings


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for structured logging.

    Colored, human-readable console output with ISO timestamps; events
    below `log_level` are dropped by the filtering bound logger.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def create_issuer_store(settings: AppSettings) -> FileIssuerStore:
    """Instantiate the IssuerResolver adapter from application settings."""
    return FileIssuerStore(
        directory=settings.issuers.directory,
        default_issuer=settings.issuers.default_issuer,
        signature_algorithm=settings.issuers.signature_algorithm,
    )


def main() -> None:
    """Load settings and serve the resign API."""
    try:
        settings = AppSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    configure_structlog(settings.log_level)
    log = structlog.get_logger()

    log.info(
        "app.starting",
        version="0.1.0",
        log_level=settings.log_level,
        issuers_dir=str(settings.issuers.directory),
        default_issuer=settings.issuers.default_issuer,
    )

    import uvicorn

    uvicorn.run(
        "crl_resigner.asgi:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
