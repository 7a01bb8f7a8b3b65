from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Request
from starlette.responses import Response

from credit_engine.core.context import reset_current_request_host, set_current_request_host


async def request_host_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    host = request.headers.get("X-Forwarded-Host") or request.headers.get("Host")

    token = set_current_request_host(host)
    try:
        return await call_next(request)
    finally:
        reset_current_request_host(token)
