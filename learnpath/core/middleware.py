"""Request middleware for context management and request logging."""

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from learnpath.core.context import (
    clear_context,
    set_correlation_id,
    set_request_id,
)


logger = structlog.get_logger(__name__)

HTTP_ERROR_STATUS = 400


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id (and optional correlation id) for every request.

    The request id is echoed back in the ``X-Request-ID`` response header and
    the context is always cleared when the request finishes.
    """

    REQUEST_ID_HEADER = "X-Request-ID"
    CORRELATION_ID_HEADER = "X-Correlation-ID"

    def __init__(
        self,
        app: ASGIApp,
        log_requests: bool = True,
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.log_requests = log_requests
        self.exclude_paths = exclude_paths or ["/health"]

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process the request inside a fresh log context."""
        start_time = time.perf_counter()

        request_id = set_request_id(request.headers.get(self.REQUEST_ID_HEADER))
        correlation_id = request.headers.get(self.CORRELATION_ID_HEADER)
        if correlation_id:
            set_correlation_id(correlation_id)
        request.state.request_id = request_id

        should_log = self.log_requests and not any(
            request.url.path.startswith(path) for path in self.exclude_paths
        )
        if should_log:
            logger.info(
                "request_started",
                method=request.method,
                path=request.url.path,
            )

        try:
            response = await call_next(request)
            if should_log:
                log_method = (
                    logger.warning
                    if response.status_code >= HTTP_ERROR_STATUS
                    else logger.info
                )
                log_method(
                    "request_completed",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
            response.headers[self.REQUEST_ID_HEADER] = request_id
            return response
        except Exception as e:
            logger.exception(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise
        finally:
            clear_context()
