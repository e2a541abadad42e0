import asyncio
import logging
import time
import uuid
from collections import deque
from threading import Lock
from typing import Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from tollroute.config import settings
from tollroute.logging_setup import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


def error_response(
    status_code: int,
    code: str,
    message: str,
    request_id: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}, "request_id": request_id},
        headers=headers,
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)
        response.headers["x-request-id"] = request_id

        logger.info(
            "request_completed",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "client_ip": request.client.host if request.client else "unknown",
            },
        )
        return response


class InMemoryRateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window request limit per client IP."""

    def __init__(self, app, window_seconds: Optional[int] = None, max_requests: Optional[int] = None):
        super().__init__(app)
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds
        self.max_requests = max_requests or settings.rate_limit_requests_per_window
        self._lock = Lock()
        self._requests_by_ip: dict[str, deque[float]] = {}

    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "unknown"
        now = time.time()

        with self._lock:
            window = self._requests_by_ip.setdefault(client_ip, deque())
            while window and (now - window[0]) > self.window_seconds:
                window.popleft()

            if len(window) >= self.max_requests:
                return error_response(
                    429,
                    "rate_limit_exceeded",
                    "Too many requests. Please retry later.",
                    request_id=getattr(request.state, "request_id", None),
                    headers={"retry-after": str(self.window_seconds)},
                )

            window.append(now)

        return await call_next(request)


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await asyncio.wait_for(call_next(request), timeout=settings.request_timeout_seconds)
        except asyncio.TimeoutError:
            return error_response(
                504,
                "request_timeout",
                f"Request exceeded {settings.request_timeout_seconds} seconds.",
                request_id=getattr(request.state, "request_id", None),
            )
