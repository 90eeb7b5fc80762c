"""
Request correlation.

Every request gets an id (the terminal UI may send its own in X-Request-ID)
and carries the acting staff member from X-Staff-Id. Both are held in
context variables for the duration of the request so that any log line
written on its behalf can be stamped with them.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
STAFF_ID_HEADER = "X-Staff-Id"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
staff_id_var: ContextVar[str] = ContextVar("staff_id", default="")


def get_request_id() -> str:
    return request_id_var.get()


def get_staff_id() -> str:
    return staff_id_var.get()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind the request and staff ids, and echo the request id in the response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request_token = request_id_var.set(request_id)
        staff_token = staff_id_var.set(request.headers.get(STAFF_ID_HEADER, "").strip())
        try:
            response = await call_next(request)
        finally:
            staff_id_var.reset(staff_token)
            request_id_var.reset(request_token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class CorrelationIdFilter:
    """Logging filter stamping records with request_id and staff_id ("-" when unset)."""

    def filter(self, record) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.staff_id = staff_id_var.get() or "-"
        return True
