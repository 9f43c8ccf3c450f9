"""
Request correlation for the CaptionFlow API.

Every response carries an x-request-id. A well-formed incoming id is echoed,
anything else is replaced. One request.complete event is logged per request,
tagged with the route family, the authenticated user and the error code the
exception handlers recorded.
"""
import re
import time
from typing import Optional
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from captionflow.core.logging import latency_bucket_ms, log_event, request_id_ctx_var

_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

# Load balancers poll these every few seconds
QUIET_PATHS = frozenset({"/healthz", "/readyz"})

# First path segment under /api -> event_type
ROUTE_EVENT_TYPES = {
    "generate-caption": "caption",
    "generate-caption-vision": "caption",
    "captions": "caption",
    "brand-voices": "brand_voice",
    "schedule-post": "schedule",
    "research": "research",
    "analyze-caption": "optimizer",
    "boost-caption": "optimizer",
    "generate-hooks": "optimizer",
    "social-connections": "social",
    "stripe-webhook": "billing",
    "user": "user",
    "waitlist": "waitlist",
    "beta": "beta",
}


def route_event_type(path: str) -> str:
    parts = [p for p in path.split("/") if p]
    if len(parts) >= 2 and parts[0] == "api":
        return ROUTE_EVENT_TYPES.get(parts[1], "http")
    return "http"


def resolve_request_id(incoming: Optional[str]) -> str:
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request_id to each request and log completion."""

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = resolve_request_id(request.headers.get(self.header_name))
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers[self.header_name] = rid

        path = request.url.path
        if path in QUIET_PATHS:
            return response

        status = response.status_code
        level = "error" if status >= 500 else "warning" if status >= 400 else "info"
        log_event(
            level,
            "request.complete",
            request_id=rid,
            user_id=getattr(request.state, "user_id", None),
            event_type=route_event_type(path),
            error_code=getattr(request.state, "error_code", None),
            extra={
                "path": path,
                "method": request.method,
                "status": status,
                "latency_bucket": latency_bucket_ms(duration_ms),
            },
        )
        return response
