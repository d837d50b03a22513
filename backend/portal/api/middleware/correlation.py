"""
Correlation ID Middleware

Tags every request with a correlation ID that is carried into log lines,
audit entries and the response headers.
"""
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from ...utils.logger import set_actor_id, set_correlation_id, get_logger
from ...utils.idgen import generate_correlation_id

logger = get_logger(__name__)

MAX_CORRELATION_ID_LENGTH = 128


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds correlation ID to all requests.

    - Reuses a client-supplied X-Correlation-Id (bounded in length)
    - Generates a new ID otherwise
    - Logs method, path, status and duration per request
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        supplied = request.headers.get("X-Correlation-Id")
        if supplied and len(supplied) <= MAX_CORRELATION_ID_LENGTH:
            correlation_id = supplied
        else:
            correlation_id = generate_correlation_id()

        set_correlation_id(correlation_id)
        set_actor_id(None)
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)",
            extra={"status": response.status_code}
        )
        response.headers["X-Correlation-Id"] = correlation_id
        return response
