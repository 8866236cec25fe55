"""FastAPI dependencies resolving the services attached to app.state."""

from fastapi import Header, HTTPException, Request

from .cache import ResponseCache
from .config import Settings
from .context import ContextBuilder
from .db import Database
from .llm import LLMService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_cache(request: Request) -> ResponseCache:
    return request.app.state.cache


def get_llm(request: Request) -> LLMService:
    return request.app.state.llm


def get_context_builder(request: Request) -> ContextBuilder:
    return request.app.state.context_builder


async def verify_token(request: Request, authorization: str = Header(None)):
    """Admin session token check."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Authentication token required")
    token = authorization.removeprefix("Bearer ").strip()
    if token not in request.app.state.admin_sessions:
        raise HTTPException(status_code=401, detail="Invalid token")
    return token


def client_ip(request: Request) -> str:
    """Proxy headers are only honoured when TRUST_PROXY_HEADERS is on."""
    if request.app.state.settings.trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()
    return request.client.host if request.client else "unknown"
