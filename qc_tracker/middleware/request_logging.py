import time
import logging
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, skip_paths: list = None):
        super().__init__(app)
        self.skip_paths = skip_paths or ["/uploads/", "/docs", "/redoc", "/openapi.json", "/api/health", "/favicon.ico"]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # history entries read the caller's address from here
        request.state.client_ip = self._get_client_ip(request)

        if any(request.url.path.startswith(skip) for skip in self.skip_paths):
            return await call_next(request)

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Error processing request {request.method} {request.url.path}: {e}")
            raise

        response_time_ms = (time.time() - start_time) * 1000
        logger.info(
            f"{request.state.client_ip} {request.method} {request.url.path} "
            f"{response.status_code} {response_time_ms:.1f}ms"
        )
        return response

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"
