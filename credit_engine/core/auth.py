from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any
from uuid import NAMESPACE_URL, UUID, uuid5

import requests
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from credit_engine.core.config import settings

bearer_scheme = HTTPBearer(auto_error=True)
optional_bearer_scheme = HTTPBearer(auto_error=False)

SUPER_ADMIN_ROLE = "super_admin"


@dataclass(slots=True)
class AuthContext:
    user_id: UUID
    subject: str
    claims: dict[str, Any] = field(default_factory=dict)


def subject_to_user_id(subject: str) -> UUID:
    try:
        return UUID(subject)
    except ValueError:
        return uuid5(NAMESPACE_URL, f"credit-engine:{subject}")


class JwksCache:
    def __init__(self, ttl_seconds: int = 300) -> None:
        self.ttl_seconds = ttl_seconds
        self._jwks: dict | None = None
        self._fetched_at = 0.0

    def get(self, url: str) -> dict:
        now = time.time()
        if self._jwks is None or (now - self._fetched_at) > self.ttl_seconds:
            response = requests.get(url, timeout=5)
            response.raise_for_status()
            self._jwks = response.json()
            self._fetched_at = now
        return self._jwks


jwks_cache = JwksCache()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _get_signing_key(token: str) -> dict:
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise _unauthorized("Invalid authentication header") from exc

    kid = unverified_header.get("kid")
    if not kid:
        raise _unauthorized("JWT is missing key id")

    try:
        jwks = jwks_cache.get(settings.auth_jwks_url)
    except requests.RequestException as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Signing keys are unavailable",
        ) from exc

    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key

    raise _unauthorized("No matching signing key found")


def _decode_jwt(token: str) -> dict:
    # A shared secret (HS256) takes precedence over the JWKS endpoint.
    if settings.auth_jwt_secret:
        key: dict | str = settings.auth_jwt_secret
        algorithms = ["HS256"]
    else:
        key = _get_signing_key(token)
        algorithms = ["RS256", "ES256"]

    options = {"verify_aud": bool(settings.auth_audience)}
    try:
        return jwt.decode(
            token,
            key,
            algorithms=algorithms,
            issuer=settings.auth_issuer or None,
            audience=settings.auth_audience or None,
            options=options,
        )
    except JWTError as exc:
        raise _unauthorized("Invalid or expired token") from exc


def _context_from_token(request: Request, token: str) -> AuthContext:
    claims = _decode_jwt(token)
    subject = claims.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token is missing required claims",
        )

    user_id = subject_to_user_id(str(subject))
    request.state.user_id = user_id
    request.state.user_subject = subject
    request.state.auth_claims = claims
    return AuthContext(user_id=user_id, subject=str(subject), claims=claims)


async def require_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> AuthContext:
    return _context_from_token(request, credentials.credentials)


async def optional_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer_scheme),
) -> AuthContext | None:
    if credentials is None:
        return None
    return _context_from_token(request, credentials.credentials)


def _is_super_admin(context: AuthContext) -> bool:
    if context.subject in settings.super_admin_subjects():
        return True

    claims = context.claims
    role = claims.get("role")
    if role == SUPER_ADMIN_ROLE:
        return True

    roles = claims.get("roles")
    if isinstance(roles, list) and SUPER_ADMIN_ROLE in roles:
        return True

    app_metadata = claims.get("app_metadata")
    if isinstance(app_metadata, dict) and app_metadata.get("role") == SUPER_ADMIN_ROLE:
        return True
    return False


async def require_super_admin(
    context: AuthContext = Depends(require_auth_context),
) -> AuthContext:
    if not _is_super_admin(context):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin access required",
        )
    return context
