"""
Logging setup and request logging middleware.
"""

from __future__ import annotations

import logging
import sys
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from teamtrack.core.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("teamtrack.request")


def configure_logging(level: str | None = None) -> None:
    """Install a single stream handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(level or settings.LOG_LEVEL)

    for handler in list(root.handlers):
        if getattr(handler, "_teamtrack", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._teamtrack = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # SQL echo is controlled by DATABASE_ECHO, not the app log level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration for every request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        level = logging.INFO
        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING

        logger.log(
            level,
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response
