"""ETag helpers for conditional GETs."""

import hashlib
import json

from fastapi import Request
from fastapi.responses import JSONResponse, Response


def generate_etag(data) -> str:
    payload = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return '"' + hashlib.md5(payload.encode()).hexdigest() + '"'


def etag_matches(header: str | None, etag: str) -> bool:
    if not header:
        return False
    if header.strip() == "*":
        return True
    candidates = [tag.strip().removeprefix("W/") for tag in header.split(",")]
    return etag in candidates


def respond_with_etag(request: Request, data) -> Response:
    """JSON response carrying an ETag, or 304 when the client already has it."""
    etag = generate_etag(data)
    headers = {"ETag": etag, "Cache-Control": "no-cache"}
    if etag_matches(request.headers.get("if-none-match"), etag):
        return Response(status_code=304, headers=headers)
    return JSONResponse(content=data, headers=headers)
