"""Correlation ID middleware.

Generates or propagates a correlation ID per request so every log line of
one analysis can be traced together. Pure ASGI (no BaseHTTPMiddleware).
"""

import time
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from carblens.logging_config import correlation_id_ctx, get_logger

logger = get_logger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Longer client-supplied IDs are replaced with a fresh UUID
_MAX_CORRELATION_ID_LENGTH = 128


def _resolve_correlation_id(scope: Scope) -> str:
    for name, value in scope.get("headers", []):
        if name == CORRELATION_ID_HEADER.lower().encode():
            candidate = value.decode("latin-1").strip()
            if 0 < len(candidate) <= _MAX_CORRELATION_ID_LENGTH:
                return candidate
            break
    return str(uuid.uuid4())


class CorrelationIdMiddleware:
    """Pure ASGI middleware that tags each HTTP request with a correlation ID.

    The ID comes from the incoming X-Correlation-ID header when present,
    otherwise a new UUID. It is stored in ``correlation_id_ctx`` for the
    logging formatters, echoed in the response headers, and the request's
    start, completion (with status and duration) or failure is logged.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        correlation_id = _resolve_correlation_id(scope)
        token = correlation_id_ctx.set(correlation_id)

        start_time = time.perf_counter()
        status_code: int | None = None
        method = scope.get("method", "")
        path = scope.get("path", "")

        logger.info("Request started", method=method, path=path)

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code

            if message["type"] == "http.response.start":
                status_code = message.get("status")
                headers = list(message.get("headers", []))
                headers.append(
                    (CORRELATION_ID_HEADER.lower().encode(), correlation_id.encode())
                )
                message = {**message, "headers": headers}

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
            logger.info(
                "Request completed",
                method=method,
                path=path,
                status_code=status_code,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
        except Exception:
            logger.exception(
                "Request failed",
                method=method,
                path=path,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise
        finally:
            correlation_id_ctx.reset(token)
