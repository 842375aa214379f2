"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import os
import sys
from datetime import date
from pathlib import Path
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["ROOM_MAINTENANCE_ENABLED"] = "false"
os.environ.pop("AUTH_CACHE_URL", None)

from app import database
from app.core.security import get_password_hash
from app.database import get_db
from app.main import app
from app.models import Base, Interest, User, UserInterest
from app.monitoring.registry import registry
from app.services.cache import get_cache

PASSWORD = "Secret123!"
PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture()
def test_engine() -> Iterator[Engine]:
    """Provide an in-memory SQLite engine for isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(test_engine, monkeypatch) -> sessionmaker[Session]:
    """Return a session factory bound to the test engine.

    Code that opens its own sessions through ``get_db_session`` is pointed at
    the same engine.
    """

    factory = sessionmaker(bind=test_engine, future=True)
    monkeypatch.setattr(database, "SessionLocal", factory)
    return factory


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    """Yield a SQLAlchemy session for unit tests."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def file_session_factory(tmp_path) -> Iterator[sessionmaker[Session]]:
    """Sessions on a file-backed SQLite database, each with its own connection.

    Lets one session commit while another is still in the middle of its work.
    """

    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'rooms.db'}", future=True)
    Base.metadata.create_all(engine)
    try:
        yield sessionmaker(bind=engine, future=True)
    finally:
        engine.dispose()


@pytest.fixture()
def client(session_factory) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient with the database dependency overridden."""

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_shared_state() -> Iterator[None]:
    """Refresh tokens and metric samples must not leak between tests."""

    yield
    get_cache().clear()
    for metric in registry.metrics():
        metric.clear()


@pytest.fixture()
def make_user(db_session) -> Callable[..., User]:
    """Factory persisting users with sensible defaults."""

    counter = {"value": 0}

    def _make_user(
        *,
        full_name: str | None = None,
        email: str | None = None,
        date_of_birth: date = date(1995, 6, 15),
        gender: str | None = "Female",
        city: str | None = "Istanbul",
        interest_ids: tuple[int, ...] = (),
        is_active: bool = True,
        **extra,
    ) -> User:
        counter["value"] += 1
        number = counter["value"]
        user = User(
            full_name=full_name or f"User {number}",
            email=email or f"user{number}@example.com",
            hashed_password=PASSWORD_HASH,
            date_of_birth=date_of_birth,
            gender=gender,
            city=city,
            is_active=is_active,
            **extra,
        )
        user.interest_links = [UserInterest(interest_id=interest_id) for interest_id in interest_ids]
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def make_interest(db_session) -> Callable[..., Interest]:
    def _make_interest(name: str, category: str | None = "General", *, is_active: bool = True) -> Interest:
        interest = Interest(name=name, category=category, is_active=is_active)
        db_session.add(interest)
        db_session.commit()
        return interest

    return _make_interest
