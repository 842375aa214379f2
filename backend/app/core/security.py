"""Security helpers for password hashing and token management."""

from __future__ import annotations

import hashlib
import json
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from fastapi import HTTPException, status
from passlib.context import CryptContext

from app.config import get_settings
from app.services.cache import get_cache

settings = get_settings()

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

REFRESH_KEY_PREFIX = "auth:refresh"


@dataclass(slots=True)
class RefreshTokenData:
    """Structured data extracted from a stored refresh token."""

    token_id: str
    subject: str
    expires_at: datetime


class RefreshTokenError(Exception):
    """Raised when a refresh token cannot be validated."""


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: Dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a signed JWT bound to the configured issuer and audience."""

    now = datetime.now(timezone.utc)
    to_encode = data.copy()
    expire = now + (
        expires_delta if expires_delta is not None else timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update(
        {
            "exp": expire,
            "iat": now,
            "iss": settings.jwt_issuer,
            "aud": settings.jwt_audience,
            "jti": secrets.token_hex(8),
        }
    )
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT access token."""

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials") from exc
    return payload


def _refresh_cache_key(token_id: str) -> str:
    return f"{REFRESH_KEY_PREFIX}:{token_id}"


def _hash_refresh_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def create_refresh_token(subject: str) -> tuple[str, int]:
    """Generate and store a refresh token bound to a subject.

    Returns the opaque ``<id>.<secret>`` token and its lifetime in seconds.
    """

    token_id = secrets.token_urlsafe(16)
    token_secret = secrets.token_urlsafe(32)
    lifetime = timedelta(days=settings.refresh_token_expire_days)
    expires_at = datetime.now(timezone.utc) + lifetime

    payload = {
        "sub": subject,
        "hash": _hash_refresh_secret(token_secret),
        "exp": int(expires_at.timestamp()),
    }
    ttl_seconds = int(lifetime.total_seconds())
    get_cache().set(_refresh_cache_key(token_id), json.dumps(payload), ttl_seconds)
    return f"{token_id}.{token_secret}", ttl_seconds


def validate_refresh_token(token: str, *, revoke: bool = False) -> RefreshTokenData:
    """Validate a refresh token and optionally revoke it."""

    parts = token.split(".", 1)
    if len(parts) != 2:
        raise RefreshTokenError("Malformed refresh token")
    token_id, token_secret = parts
    cache_key = _refresh_cache_key(token_id)
    cache = get_cache()
    cached = cache.get(cache_key)
    if cached is None:
        raise RefreshTokenError("Refresh token not found")

    try:
        payload = json.loads(cached)
    except json.JSONDecodeError as exc:
        cache.delete(cache_key)
        raise RefreshTokenError("Corrupted refresh token payload") from exc

    expected_hash = payload.get("hash")
    if not expected_hash or not secrets.compare_digest(expected_hash, _hash_refresh_secret(token_secret)):
        cache.delete(cache_key)
        raise RefreshTokenError("Refresh token signature mismatch")

    exp_timestamp = payload.get("exp")
    if not isinstance(exp_timestamp, (int, float)):
        cache.delete(cache_key)
        raise RefreshTokenError("Refresh token is missing expiration")

    expires_at = datetime.fromtimestamp(exp_timestamp, tz=timezone.utc)
    if expires_at <= datetime.now(timezone.utc):
        cache.delete(cache_key)
        raise RefreshTokenError("Refresh token expired")

    if revoke:
        cache.delete(cache_key)

    return RefreshTokenData(token_id=token_id, subject=str(payload.get("sub")), expires_at=expires_at)


def revoke_refresh_token(token: str) -> bool:
    """Drop a refresh token from storage; returns ``False`` when it was not valid."""

    try:
        validate_refresh_token(token, revoke=True)
    except RefreshTokenError:
        return False
    return True
