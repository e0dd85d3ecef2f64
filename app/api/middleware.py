from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest
from app.api.error_handlers import error_response
import logging
import time

logger = logging.getLogger("app.requests")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request with its status and duration.

    Exceptions no handler classified are turned into a 500 response here,
    so each one is logged once and the server does not re-raise it.
    """

    def __init__(self, app, production: bool = False):
        super().__init__(app)
        self.production = production

    async def dispatch(self, request: StarletteRequest, call_next):
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            response = error_response(request, exc, self.production)

        elapsed_ms = (time.perf_counter() - start) * 1000
        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level,
            "%s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms
        )
        return response
