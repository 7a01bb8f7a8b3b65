from __future__ import annotations

from contextvars import ContextVar
from typing import Final

_CURRENT_REQUEST_HOST: Final[ContextVar[str | None]] = ContextVar(
    "current_request_host",
    default=None,
)


def set_current_request_host(host: str | None) -> object:
    return _CURRENT_REQUEST_HOST.set(host)


def get_current_request_host() -> str | None:
    return _CURRENT_REQUEST_HOST.get()


def reset_current_request_host(token: object) -> None:
    _CURRENT_REQUEST_HOST.reset(token)
