import logging
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Tags every request with a request id (client-supplied or generated) and logs one `http_request` line with caller, status and latency."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        logger.info(
            "http_request",
            extra={
                "request_id": request_id,
                "owner_id": request.headers.get("x-user-id"),
                "path": request.url.path,
                "method": request.method,
                "status": response.status_code,
                "latency_ms": round((time.perf_counter() - started) * 1000.0, 2),
            },
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")
