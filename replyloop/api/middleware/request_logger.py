"""Per-request access logging and timing headers."""

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from replyloop.lib.logger import request_id_var

logger = logging.getLogger(__name__)


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and latency; echoes X-Request-ID.

    The request id is bound to the logging context for the duration of the
    request, so engine log lines carry it too.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or f"req-{uuid.uuid4().hex[:12]}"
        client = request.client.host if request.client else "unknown"
        token = request_id_var.set(request_id)

        logger.info(f"→ {request.method} {request.url.path} from {client}")

        try:
            response = await call_next(request)
        except Exception as e:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.error(f"✗ {request.method} {request.url.path} failed in {latency_ms:.0f}ms: {e}")
            raise
        finally:
            request_id_var.reset(token)

        latency_ms = (time.perf_counter() - start) * 1000
        provider = response.headers.get("X-Provider", "")
        logger.info(
            f"← {request.method} {request.url.path} [{request_id}] "
            f"{response.status_code} in {latency_ms:.0f}ms"
            + (f" provider={provider}" if provider else "")
        )

        response.headers["X-Response-Time"] = f"{latency_ms:.2f}ms"
        response.headers["X-Request-ID"] = request_id
        return response
