import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.whtransfers.core.context import bind_trace_id, unbind_trace_id

TRACE_HEADER = "X-Trace-ID"
# Stored in transfer_logs.trace_id (64 chars), so caller-supplied ids are bounded.
_VALID_TRACE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")


def resolve_trace_id(incoming: str | None) -> str:
    """Keep a well-formed caller trace id, otherwise mint a new one."""
    candidate = (incoming or "").strip()
    if _VALID_TRACE_ID.match(candidate):
        return candidate
    return str(uuid.uuid4())


class TraceIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        trace_id = resolve_trace_id(request.headers.get(TRACE_HEADER))
        request.state.trace_id = trace_id
        token = bind_trace_id(trace_id)
        try:
            response: Response = await call_next(request)
        finally:
            unbind_trace_id(token)
        response.headers[TRACE_HEADER] = trace_id
        return response
