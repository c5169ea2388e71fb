from __future__ import annotations

import logging
from time import perf_counter

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from bellforge.core.config import Settings

logger = logging.getLogger(__name__)

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, settings: Settings) -> None:
        super().__init__(app)
        self._settings = settings

    async def dispatch(self, request: Request, call_next) -> Response:
        started = perf_counter()
        response = await call_next(request)
        elapsed_ms = (perf_counter() - started) * 1000
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        # Generated schedules carry staff names; never let proxies keep them.
        response.headers.setdefault("Cache-Control", "no-store")
        response.headers.setdefault("Server-Timing", f"app;dur={elapsed_ms:.1f}")
        if self._settings.security_enable_hsts:
            max_age = max(1, self._settings.security_hsts_max_age_seconds)
            response.headers.setdefault("Strict-Transport-Security", f"max-age={max_age}; includeSubDomains")
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects configuration uploads whose declared size exceeds the limit.

    The error body uses the same ``{message, details}`` shape as AppError so
    the UI can show it next to validation failures.
    """

    def __init__(self, app, *, max_bytes: int) -> None:
        super().__init__(app)
        self._max_bytes = max(1, max_bytes)

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method not in _BODY_METHODS:
            return await call_next(request)

        declared = request.headers.get("content-length", "")
        size = int(declared) if declared.isdigit() else 0
        if size > self._max_bytes:
            logger.warning("Rejected %s %s: %d byte body", request.method, request.url.path, size)
            return JSONResponse(
                status_code=413,
                content={
                    "message": f"Schedule configuration too large ({size} bytes)",
                    "details": {"max_bytes": self._max_bytes, "received_bytes": size},
                },
            )
        return await call_next(request)
