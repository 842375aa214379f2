"""Unit tests for authentication helpers and endpoints."""

from __future__ import annotations

from datetime import date, timedelta

import jwt
import pytest
from fastapi import HTTPException

from app.api.auth import login_user, register_user
from app.api.deps import get_user_from_token
from app.config import get_settings
from app.core.clock import utcnow
from app.core.errors import Conflict, ValidationFailed
from app.core.security import (
    RefreshTokenError,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    revoke_refresh_token,
    validate_refresh_token,
)
from app.schemas import LoginRequest, RegisterRequest

PASSWORD = "Secret123!"


def registration(**overrides) -> RegisterRequest:
    payload = {
        "full_name": "Ayse Yilmaz",
        "email": "ayse@example.com",
        "password": PASSWORD,
        "confirm_password": PASSWORD,
        "date_of_birth": date(1994, 5, 1),
        "gender": "Female",
        "city": "Izmir",
    }
    payload.update(overrides)
    return RegisterRequest(**payload)


def test_login_user_returns_token_pair(db_session, make_user):
    """Successful login should return a bearer token pair and stamp the login time."""

    user = make_user(email="tester@example.com")

    response = login_user(LoginRequest(email="tester@example.com", password=PASSWORD), db_session)

    assert response.token_type == "bearer"
    assert response.user.id == user.id
    assert response.user.last_login_at is not None
    assert decode_access_token(response.access_token)["sub"] == str(user.id)


@pytest.mark.parametrize("password", ["wrong-Pass1!", PASSWORD])
def test_login_user_rejects_invalid_credentials(db_session, make_user, password):
    """Wrong passwords and inactive accounts share the same 401 answer."""

    make_user(email="tester@example.com", is_active=password == "wrong-Pass1!")

    with pytest.raises(HTTPException) as exc_info:
        login_user(LoginRequest(email="tester@example.com", password=password), db_session)

    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Invalid email or password"


def test_register_user_rejects_minors_and_duplicates(db_session, make_user):
    today = utcnow().date()
    seventeen = date(today.year - 17, today.month, 1)
    with pytest.raises(ValidationFailed):
        register_user(registration(date_of_birth=seventeen), db_session)

    make_user(email="ayse@example.com")
    with pytest.raises(Conflict):
        register_user(registration(), db_session)


def test_register_request_validates_passwords():
    with pytest.raises(ValueError):
        registration(password="alllowercase1!", confirm_password="alllowercase1!")
    with pytest.raises(ValueError):
        registration(confirm_password="Different123!")


def test_register_user_stores_interests(db_session, make_interest):
    music = make_interest("Music")

    response = register_user(registration(interest_ids=[music.id]), db_session)

    assert [interest.name for interest in response.user.interests] == ["Music"]
    assert response.user.age >= 18


def test_get_user_from_token_resolves_user(db_session, make_user):
    user = make_user()
    token = create_access_token({"sub": str(user.id)})

    assert get_user_from_token(token, db_session).id == user.id


def test_get_user_from_token_rejects_inactive_and_foreign_tokens(db_session, make_user):
    inactive = make_user(is_active=False)
    with pytest.raises(HTTPException) as exc_info:
        get_user_from_token(create_access_token({"sub": str(inactive.id)}), db_session)
    assert exc_info.value.status_code == 401

    settings = get_settings()
    foreign = jwt.encode(
        {"sub": "1", "iss": "someone-else", "aud": settings.jwt_audience},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(HTTPException):
        decode_access_token(foreign)


def test_expired_access_token_is_rejected():
    token = create_access_token({"sub": "1"}, expires_delta=timedelta(seconds=-1))

    with pytest.raises(HTTPException) as exc_info:
        decode_access_token(token)

    assert exc_info.value.detail == "Token has expired"


def test_refresh_token_rotation_and_revocation():
    token, ttl = create_refresh_token("42")

    assert ttl == get_settings().refresh_token_expire_days * 24 * 3600
    assert validate_refresh_token(token).subject == "42"
    assert revoke_refresh_token(token) is True
    assert revoke_refresh_token(token) is False
    with pytest.raises(RefreshTokenError):
        validate_refresh_token(token)


def test_refresh_token_with_wrong_secret_is_dropped():
    token, _ = create_refresh_token("7")
    token_id = token.split(".", 1)[0]

    with pytest.raises(RefreshTokenError):
        validate_refresh_token(f"{token_id}.tampered")
    with pytest.raises(RefreshTokenError):
        validate_refresh_token(token)
