"""Request ID propagation and HTTP latency metrics for the advisor API"""

import re
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from advisor_gateway.infrastructure.observability.metrics import request_duration_histogram

REQUEST_ID_HEADER = "X-Request-ID"

# Upstream IDs are echoed into headers and logs, so only short opaque tokens are accepted
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

UNMATCHED_ROUTE = "unmatched"


def resolve_request_id(incoming: str | None) -> str:
    """Reuse a well-formed caller request ID, otherwise mint one"""
    if incoming and _REQUEST_ID_PATTERN.match(incoming):
        return incoming
    return str(uuid.uuid4())


def route_label(request: Request) -> str:
    """Route template for the metrics label"""
    route = request.scope.get("route")
    return getattr(route, "path", UNMATCHED_ROUTE)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ID shared by its logs and its response"""

    async def dispatch(self, request: Request, call_next):
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)

        request_duration_histogram.labels(
            method=request.method,
            endpoint=route_label(request),
            status=response.status_code,
        ).observe(time.perf_counter() - started)
        return response
