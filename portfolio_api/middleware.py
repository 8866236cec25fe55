"""HTTP middleware: CORS allow-list, security headers, rate limiting, SQL guard, access log."""

import logging
import time
from urllib.parse import unquote

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .dependencies import client_ip
from .security import contains_sql_injection_pattern

logger = logging.getLogger(__name__)

ALLOW_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
ALLOW_HEADERS = "Origin, Content-Type, Accept, Authorization, X-Requested-With, If-None-Match"
EXPOSE_HEADERS = "Content-Length, ETag, Retry-After"

RATE_LIMIT_EXEMPT = ("/health", "/metrics")


class CORSGuardMiddleware(BaseHTTPMiddleware):
    """Static origin allow-list. Disallowed origins are rejected with 403."""

    def __init__(self, app, allowed_origins: list[str], allow_any: bool = False):
        super().__init__(app)
        self.allowed_origins = set(allowed_origins)
        self.allow_any = allow_any

    def is_allowed(self, origin: str) -> bool:
        return self.allow_any or origin in self.allowed_origins

    def _cors_headers(self, origin: str) -> dict:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": ALLOW_METHODS,
            "Access-Control-Allow-Headers": ALLOW_HEADERS,
            "Access-Control-Expose-Headers": EXPOSE_HEADERS,
            "Access-Control-Allow-Credentials": "true",
            "Access-Control-Max-Age": "86400",
            "Vary": "Origin",
        }

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")
        if not origin:
            return await call_next(request)

        if not self.is_allowed(origin):
            logger.warning("[CORS] blocked origin %s on %s %s", origin, request.method, request.url.path)
            return JSONResponse(status_code=403, content={"detail": "Origin not allowed"})

        if request.method == "OPTIONS":
            return Response(status_code=200, headers=self._cors_headers(origin))

        response = await call_next(request)
        response.headers.update(self._cors_headers(origin))
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, hsts: bool = True, csp: str = ""):
        super().__init__(app)
        self.headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "X-XSS-Protection": "1; mode=block",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
        }
        if hsts:
            self.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
        if csp:
            self.headers["Content-Security-Policy"] = csp

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.update(self.headers)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP limit using the limiter on app.state."""

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path in RATE_LIMIT_EXEMPT:
            return await call_next(request)

        limiter = request.app.state.rate_limiter
        allowed, retry_after = await limiter.hit(client_ip(request))
        if not allowed:
            logger.warning("[RateLimit] %s exceeded %d requests/min", client_ip(request), limiter.limit)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)


class SQLInjectionGuardMiddleware(BaseHTTPMiddleware):
    """Rejects query-string values and path segments matching known SQL injection patterns."""

    async def dispatch(self, request: Request, call_next):
        values = [unquote(segment) for segment in request.url.path.split("/") if segment]
        for key, value in request.query_params.multi_items():
            values.extend((key, value))

        for value in values:
            if contains_sql_injection_pattern(value):
                logger.warning("[Security] SQL injection pattern from %s: %r", client_ip(request), value[:200])
                return JSONResponse(status_code=400, content={"detail": "Invalid input detected"})
        return await call_next(request)


def route_template(scope) -> str:
    """Metrics label for a request: the full matched route template.

    Depending on the FastAPI version the matched route may carry only the path
    relative to its router prefix, so the prefix is recovered from the request path.
    """
    route = scope.get("route")
    template = getattr(route, "path_format", getattr(route, "path", None))
    if template is None:
        return "unmatched"
    path = scope.get("path", "")
    try:
        concrete = template.format(**scope.get("path_params", {}))
    except (KeyError, IndexError, ValueError):
        return template
    if not path.endswith(concrete):
        return template
    return path[: len(path) - len(concrete)] + template


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Logs each request and records it in the Prometheus metrics."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            elapsed = time.perf_counter() - start
            request.app.state.metrics.observe(request.method, route_template(request.scope), status, elapsed)
            logger.info(
                "%s %s %d %.1fms %s",
                request.method,
                request.url.path,
                status,
                elapsed * 1000,
                client_ip(request),
            )
