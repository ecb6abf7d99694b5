"""HTTP middleware for the image service.

Two concerns live here: every request gets an ``X-Request-ID`` and one
structured ``request`` log record, and files served from the processed
directory are marked as immutable for caching (their names embed a
timestamp and are never rewritten).
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from imaging.errors import ErrorCode, error_body


logger = logging.getLogger("imaging.request")

PROCESSED_CACHE_CONTROL = "public, max-age=604800, immutable"


def install_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def add_cache_control_header(request: Request, call_next):
        response = await call_next(request)
        if response.status_code == 200 and request.url.path.startswith("/processed/"):
            response.headers["Cache-Control"] = PROCESSED_CACHE_CONTROL
        return response

    # Registered last so it wraps the cache-control middleware and sees the
    # final status code.
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        except Exception as exc:
            # Rendered here so the response still carries the request id.
            logger.exception("unhandled error", extra={"request_id": request_id})
            response = JSONResponse(
                status_code=500,
                content=error_body(ErrorCode.INTERNAL_ERROR, str(exc) or "Something went wrong", request_id),
            )
        response.headers["X-Request-ID"] = request_id

        client_ip = request.client.host if request.client else None
        logger.info(
            "request",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "timing_ms": int((time.perf_counter() - start) * 1000),
                "client_ip": client_ip,
            },
        )
        return response


__all__ = ["install_middleware", "PROCESSED_CACHE_CONTROL"]
