import re
import time
import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
_CLIENT_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


def _request_id(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER, "")
    if _CLIENT_REQUEST_ID_RE.match(supplied):
        return supplied
    return uuid.uuid4().hex


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind a request id to every log line of the request and echo it back."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = _request_id(request)
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)
        started = time.perf_counter()
        logger.info("request.started", method=request.method, query=str(request.url.query)[:200])

        response = await call_next(request)

        # Streaming responses reach this point once headers are ready; the body may still be flowing.
        logger.info(
            "request.completed",
            method=request.method,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
