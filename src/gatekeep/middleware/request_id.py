"""Request ID middleware — correlate auth events with the request.

A caller-supplied X-Request-ID is reused only when it is short and made
of safe characters, since it ends up in every log line for the request.
Anything else is replaced by a fresh UUID. Requests under the auth
prefix also emit one "http.auth_request" event with status and timing;
credentials and tokens are never part of it.
"""

import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from gatekeep.middleware.security import AUTH_PATH_PREFIX

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"

_SAFE_ID = re.compile(r"[A-Za-z0-9._:-]{1,64}")


def resolve_request_id(incoming: str | None) -> str:
    if incoming and _SAFE_ID.fullmatch(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        response: Response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        if request.url.path.startswith(AUTH_PATH_PREFIX):
            logger.info(
                "http.auth_request",
                status=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        return response
