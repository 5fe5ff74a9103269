# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tasktags.core.database import build_engine, build_sessionmaker, get_db, init_db
from tasktags.main import app
from tasktags.models.user import User


@pytest_asyncio.fixture()
async def engine(tmp_path: Path):
    """Fresh SQLite file database per test."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'tasks.sqlite3'}")
    assert await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture()
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def make_user(db):
    """
    Insert a user row directly and return its id.

    Service tests do not need real password hashes, so we skip bcrypt here.
    """

    async def _make(username: str) -> int:
        user = User(username=username, password_hash="not-a-real-hash")
        db.add(user)
        await db.commit()
        return user.id

    return _make


@pytest_asyncio.fixture()
async def client(session_factory):
    """HTTP client bound to the app, with get_db pointed at the test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def auth_headers(client):
    """Register and log in users over HTTP, returning bearer headers."""

    async def _login(username: str, password: str = "password123", email: str | None = None) -> dict:
        payload = {"username": username, "password": password}
        if email:
            payload["email"] = email
        res = await client.post("/api/auth/register", json=payload)
        assert res.status_code == 201, res.text
        res = await client.post("/api/auth/login", json={"username": username, "password": password})
        assert res.status_code == 200, res.text
        return {"Authorization": f"Bearer {res.json()['token']}"}

    return _login
