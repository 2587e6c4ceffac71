from __future__ import annotations

import hmac
from dataclasses import dataclass, field
from typing import Optional

import jwt
from fastapi import HTTPException, status

from pos.config import Settings, get_settings


@dataclass(frozen=True)
class Principal:
    """Who made a request: a till holding an API key, or a JWT subject."""

    auth_type: str
    subject: Optional[str] = None
    claims: dict = field(default_factory=dict)


def load_api_keys(settings: Optional[Settings] = None) -> list[str]:
    settings = settings or get_settings()
    if not settings.API_KEYS:
        return []
    return [value.strip() for value in settings.API_KEYS.split(",") if value.strip()]


def auth_enabled(settings: Settings, keys) -> bool:
    """A fresh install with no keys and no JWT secret accepts every request."""
    return bool(keys or settings.JWT_SECRET or settings.JWT_REQUIRED)


def _matches_any(candidate: str, keys) -> bool:
    return any(hmac.compare_digest(candidate.encode(), key.encode()) for key in keys)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def decode_token(token: str, settings: Optional[Settings] = None) -> dict:
    settings = settings or get_settings()
    if not settings.JWT_SECRET:
        raise _unauthorized("JWT auth is not configured")
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
            options={"verify_aud": bool(settings.JWT_AUDIENCE)},
        )
    except jwt.PyJWTError as exc:
        raise _unauthorized("Invalid JWT") from exc


def authenticate_request(
    api_key: Optional[str],
    authorization: Optional[str],
    *,
    require_auth: bool = False,
) -> Optional[Principal]:
    settings = get_settings()
    keys = load_api_keys(settings)
    require_auth = require_auth or settings.JWT_REQUIRED

    if api_key and not settings.JWT_REQUIRED and _matches_any(api_key, keys):
        return Principal(auth_type="api_key")

    token = _bearer_token(authorization)
    if token:
        try:
            claims = decode_token(token, settings)
        except HTTPException:
            if settings.JWT_REQUIRED:
                raise
        else:
            return Principal(auth_type="jwt", subject=claims.get("sub"), claims=claims)

    if require_auth and auth_enabled(settings, keys):
        raise _unauthorized("Not authenticated")
    return None


__all__ = [
    "Principal",
    "auth_enabled",
    "authenticate_request",
    "decode_token",
    "load_api_keys",
]
