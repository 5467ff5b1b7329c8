"""
ClipSync Backend — Request ID Middleware
=========================================

What:  Assigns a correlation id to each request and echoes it in X-Request-ID.
How:   Accepts a client-supplied X-Request-ID (so a device can correlate its
       own logs), otherwise generates a short random id. The id is stored in
       a ContextVar for log records and in request.state for error handlers.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
MAX_CLIENT_ID_LENGTH = 64

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def _new_request_id() -> str:
    return uuid.uuid4().hex[:12]


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER, "").strip()
        if not rid or len(rid) > MAX_CLIENT_ID_LENGTH:
            rid = _new_request_id()

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response


class RequestIDLogFilter:
    """
    logging filter that stamps `record.request_id` from the ContextVar.

    Installed on the root handler by setup_logging so the format string can
    reference %(request_id)s on every record, including library loggers.
    """

    def filter(self, record) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True
