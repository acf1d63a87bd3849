"""
HTTP middleware - Audit trail and response hardening.

AuditMiddleware writes one line per request:

    REQUEST: POST /ask status=201 duration=1.284s client=203.0.113.7 quota=49

`quota` echoes the X-RateLimit-Remaining header when a rate-limited route
set one. The welcome page and health probes are logged at DEBUG only.
"""
import time
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from rukh.core.logging_config import get_logger

logger = get_logger(__name__)

QUIET_PATHS = frozenset({"/", "/health", "/favicon.ico"})

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def client_address(request: Request) -> str:
    """
    Resolve the caller's address.

    Behind a proxy the first X-Forwarded-For hop is the client; otherwise
    the socket peer is used.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    return request.client.host if request.client else "unknown"


def _level_for(status_code: int) -> Callable[..., None]:
    if status_code >= 500:
        return logger.error
    if status_code >= 400:
        return logger.warning
    return logger.info


class AuditMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status, latency, client and remaining quota."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        client = client_address(request)
        line = f"{request.method} {request.url.path}"

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"REQUEST FAILED: {line} client={client} "
                f"duration={time.perf_counter() - started:.3f}s error={e}"
            )
            raise

        elapsed = time.perf_counter() - started
        response.headers["X-Response-Time"] = f"{elapsed:.3f}s"
        self._record(request.url.path, line, response, elapsed, client)
        return response

    @staticmethod
    def _record(path: str, line: str, response: Response, elapsed: float, client: str) -> None:
        status = response.status_code
        if path in QUIET_PATHS:
            logger.debug(f"QUIET: {line} status={status} duration={elapsed:.3f}s")
            return

        quota: Optional[str] = response.headers.get("X-RateLimit-Remaining")
        suffix = f" quota={quota}" if quota is not None else ""
        _level_for(status)(
            f"REQUEST: {line} status={status} duration={elapsed:.3f}s client={client}{suffix}"
        )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds SECURITY_HEADERS to every response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        return response
