from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Optional
import time
import logging

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs every significant request with its timing and echoes the caller's request id"""

    def __init__(self, app, exclude_paths: Optional[list] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/favicon.ico",
            "/config/health",
        ]

    async def dispatch(self, request: Request, call_next):
        if any(request.url.path.startswith(path) for path in self.exclude_paths):
            return await call_next(request)

        start_time = time.time()
        request_id = request.headers.get(REQUEST_ID_HEADER)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Request failed: {request.method} {request.url.path} - {e}")
            raise

        response_time = time.time() - start_time
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id

        if self._should_log_request(request.method, response.status_code):
            logger.info(
                f"Request: {request.method} {request.url.path} - Status: {response.status_code} - "
                f"Time: {response_time:.3f}s - IP: {self._get_client_ip(request)}"
                + (f" - Request-ID: {request_id}" if request_id else "")
            )

        return response

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP address from request"""
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"

    def _should_log_request(self, method: str, status_code: int) -> bool:
        """Writes and failures are always logged; successful reads only at debug level"""
        return method != "GET" or status_code >= 400 or logger.isEnabledFor(logging.DEBUG)
