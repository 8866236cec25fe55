"""Application factory, lifespan and the unprefixed health/metrics endpoints."""

import asyncio
import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, Response

from . import __version__
from .admin import router as admin_router
from .analytics import router as analytics_router
from .cache import ResponseCache
from .chat import router as chat_router
from .config import Settings
from .content import router as content_router
from .context import ContextBuilder
from .db import Database
from .experience import router as experience_router
from .llm import LLMService
from .log import configure_logging
from .metrics import HTTPMetrics
from .middleware import (
    AccessLogMiddleware,
    CORSGuardMiddleware,
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
    SQLInjectionGuardMiddleware,
)
from .projects import router as projects_router
from .rate_limit import RedisRateLimiter, SlidingWindowRateLimiter
from .security import check_basic_auth
from .skills import router as skills_router

logger = logging.getLogger(__name__)

API_PREFIXES = ("/api/v1", "/api")

ROUTERS = (
    projects_router,
    skills_router,
    experience_router,
    content_router,
    chat_router,
    analytics_router,
    admin_router,
)


@asynccontextmanager
async def lifespan(app):
    state = app.state
    await state.db.connect()
    await state.cache.connect()

    probe_task = asyncio.create_task(state.llm.probe()) if state.llm_probe else None
    logger.info("[App] portfolio API %s started (%s)", __version__, state.settings.environment)
    yield

    if probe_task:
        probe_task.cancel()
        try:
            await probe_task
        except asyncio.CancelledError:
            pass
    await state.llm.aclose()
    await state.cache.close()
    await state.db.close()
    logger.info("[App] shutdown complete")


def _resolve_origins(settings: Settings) -> tuple[list[str], bool]:
    origins = [origin for origin in settings.allowed_origins if origin != "*"]
    wildcard = len(origins) != len(settings.allowed_origins)
    if wildcard and not settings.is_development:
        logger.error("[CORS] wildcard origin is not allowed in %s, ignoring it", settings.environment)
        wildcard = False
    return origins, wildcard


def _format_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    error = errors[0]
    if error.get("type") == "json_invalid":
        reason = (error.get("ctx") or {}).get("error", "")
        return f"Invalid JSON body: {reason}".rstrip(": ")

    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(loc) or "body"
    message = error.get("msg", "invalid value").removeprefix("Value error, ")
    if message.startswith(f"{field}:") or ":" in message.split(" ", 1)[0]:
        return message
    return f"{field}: {message}"


def create_app(
    settings: Settings | None = None,
    *,
    database=None,
    cache: ResponseCache | None = None,
    llm: LLMService | None = None,
    rate_limiter=None,
    llm_probe: bool = True,
) -> FastAPI:
    """Build the application. Collaborators can be injected; otherwise they come from settings."""
    settings = settings or Settings.from_env()

    redis_client = None
    if cache is None or (rate_limiter is None and settings.rate_limit_backend == "redis"):
        redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    if cache is None:
        cache = ResponseCache(settings.redis_url, client=redis_client)
    if rate_limiter is None:
        if settings.rate_limit_backend == "redis":
            rate_limiter = RedisRateLimiter(redis_client, limit=settings.rate_limit_per_minute)
        else:
            rate_limiter = SlidingWindowRateLimiter(limit=settings.rate_limit_per_minute)

    database = database or Database(
        settings.database_url,
        ssl_mode=settings.database_ssl_mode,
        min_size=settings.database_pool_min,
        max_size=settings.database_pool_max,
    )
    llm = llm or LLMService(settings.ollama_url, settings.llm_model, timeout=settings.llm_timeout)

    app = FastAPI(title="Portfolio API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.db = database
    app.state.cache = cache
    app.state.llm = llm
    app.state.llm_probe = llm_probe
    app.state.context_builder = ContextBuilder(database)
    app.state.rate_limiter = rate_limiter
    app.state.metrics = HTTPMetrics()
    app.state.admin_sessions = set()

    # added innermost first
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    if settings.sql_guard_enabled:
        app.add_middleware(SQLInjectionGuardMiddleware)
    app.add_middleware(RateLimitMiddleware)
    origins, allow_any = _resolve_origins(settings)
    app.add_middleware(CORSGuardMiddleware, allowed_origins=origins, allow_any=allow_any)
    app.add_middleware(SecurityHeadersMiddleware, hsts=not settings.is_development, csp=settings.csp_policy)
    app.add_middleware(AccessLogMiddleware)

    for prefix in API_PREFIXES:
        for router in ROUTERS:
            app.include_router(router, prefix=prefix, include_in_schema=prefix == API_PREFIXES[0])

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": _format_validation_error(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("[App] unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/health", tags=["ops"])
    async def health(request: Request):
        state = request.app.state
        try:
            database_ok = await state.db.ping()
        except Exception as e:
            logger.error("[DB] health check failed: %s", e)
            database_ok = False
        cache_ok = await state.cache.ping()

        body = {
            "status": "healthy" if database_ok else "unhealthy",
            "database": "connected" if database_ok else "disconnected",
            "cache": "connected" if cache_ok else "disconnected",
        }
        return JSONResponse(status_code=200 if database_ok else 503, content=body)

    @app.get("/metrics", tags=["ops"])
    async def metrics(request: Request):
        settings = request.app.state.settings
        if settings.metrics_auth_enabled and not check_basic_auth(
            request.headers.get("authorization"), settings.metrics_username, settings.metrics_password
        ):
            return JSONResponse(
                status_code=401,
                content={"detail": "Unauthorized"},
                headers={"WWW-Authenticate": 'Basic realm="metrics"'},
            )
        payload, content_type = request.app.state.metrics.render()
        return Response(content=payload, media_type=content_type)

    return app


def main():
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port, log_config=None)


_settings = Settings.from_env()
configure_logging(_settings.log_level)
app = create_app(_settings)


if __name__ == "__main__":
    main()
