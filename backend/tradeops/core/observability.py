from __future__ import annotations

import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import TimeoutError as SATimeoutError
from starlette.responses import Response

_APP_START_MONOTONIC = time.monotonic()

_SLOW_REQUEST_MS = int(os.getenv("SLOW_REQUEST_MS", "2000"))

# Liveness probes hit these every few seconds.
_QUIET_SUFFIXES = ("/health", "/healthz")


def _pool_status() -> str | None:
    try:
        from tradeops.database import engine

        return engine.pool.status()
    except AttributeError:
        return None


def _app_logger(request: Request) -> logging.Logger:
    logger = getattr(getattr(request.app, "state", None), "logger", None)
    return logger or logging.getLogger("tradeops")


def uptime_seconds() -> float:
    return max(0.0, time.monotonic() - _APP_START_MONOTONIC)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds") + "Z"


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return a structured 500 for anything the routes did not handle.

    The traceback is logged; the client only sees the request id.
    """
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())

    extra = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "exception_type": type(exc).__name__,
    }
    _app_logger(request).exception("unhandled_exception", extra=extra)

    headers = {"X-Request-ID": request_id}

    # Attach CORS headers so browsers do not turn real 500s into opaque CORS errors.
    origin = request.headers.get("origin")
    if origin:
        from tradeops.config import settings

        allowed = set(settings.cors_origins or [])
        if origin in allowed or "*" in allowed:
            headers.update(
                {
                    "Access-Control-Allow-Origin": origin,
                    "Access-Control-Allow-Credentials": "true",
                    "Vary": "Origin",
                }
            )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error. Please try again later.",
            "request_id": request_id,
            "code": "internal_error",
        },
        headers=headers,
    )


def _request_fields(request: Request, request_id: str, started: float, **more) -> dict:
    fields = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
    }
    fields.update(more)
    return fields


async def request_logging_middleware(request: Request, call_next: Callable) -> Response:
    """Tag every request with an X-Request-ID and log its outcome and duration.

    Bodies are never logged; invoices and KYB payloads carry counterparty data.
    """
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    logger = _app_logger(request)

    started = time.perf_counter()
    try:
        response: Response = await call_next(request)
    except SATimeoutError as exc:
        logger.error(
            "db_pool_timeout",
            extra=_request_fields(request, request_id, started, pool_status=_pool_status(), error=str(exc)),
        )
        raise
    except Exception:
        logger.exception("http_request_failed", extra=_request_fields(request, request_id, started))
        raise

    fields = _request_fields(request, request_id, started, status_code=response.status_code)
    if fields["duration_ms"] >= _SLOW_REQUEST_MS:
        logger.info("slow_request", extra={**fields, "pool_status": _pool_status()})
    elif not request.url.path.rstrip("/").endswith(_QUIET_SUFFIXES):
        logger.info("http_request", extra=fields)

    response.headers.setdefault("X-Request-ID", request_id)
    return response


def request_context(request: Request | None) -> dict[str, str | None]:
    """Request metadata for audit rows."""

    if request is None:
        return {"request_id": None, "ip": None, "user_agent": None}
    request_id = getattr(request.state, "request_id", None) or request.headers.get("x-request-id")
    client = getattr(request, "client", None)
    return {
        "request_id": request_id,
        "ip": getattr(client, "host", None),
        "user_agent": (request.headers.get("user-agent") or "")[:256] or None,
    }
