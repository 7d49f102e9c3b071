import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

SLOW_REQUEST_MS = 1000


class HTTPLogMiddleware(BaseHTTPMiddleware):
    """Logs each request and stamps ``X-Response-Time-Ms`` on the response."""

    def __init__(self, app, logger_name: str = "meetup.http", slow_ms: int = SLOW_REQUEST_MS):
        super().__init__(app)
        self._logger = logging.getLogger(logger_name)
        self._slow_ms = slow_ms

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.monotonic()
        method, path = request.method, request.url.path
        user = request.headers.get("x-user-id", "-")
        try:
            response = await call_next(request)
        except Exception as e:
            self._logger.warning(
                "http.request error method=%s path=%s user=%s dur_ms=%d err=%r",
                method, path, user, self._elapsed_ms(start), e,
            )
            raise
        dur_ms = self._elapsed_ms(start)
        response.headers["X-Response-Time-Ms"] = str(dur_ms)
        level = logging.WARNING if dur_ms >= self._slow_ms or response.status_code >= 500 else logging.DEBUG
        self._logger.log(
            level,
            "http.request method=%s path=%s user=%s status=%d dur_ms=%d",
            method, path, user, response.status_code, dur_ms,
        )
        return response

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
