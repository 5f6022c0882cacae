"""
Pytest configuration and fixtures for SPMS tests.
"""
import os

# Cheap hashes and an in-memory database; must be set before spms is imported
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import re
from typing import Any, Dict, List

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from spms import create_app
from spms.auth import InMemoryIdentityStore, SessionAuthenticator, UserCreate
from spms.auth.models import Role
from spms.core.config import Settings
from spms.core.context import ResponseCookies
from spms.db import Database
from spms.routing import Router
from spms.sessions import Session, new_session_id
from spms.sessions.backends import InMemorySessionBackend

PASSWORD = "correct-horse-battery"
START = 1_700_000_000.0
CSRF_FIELD_RE = re.compile(r'name="csrf_token" value="([0-9a-f]+)"')


class FakeClock:
    """Controllable time source."""

    def __init__(self, now: float = START) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        BCRYPT_ROUNDS=4,
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        SUPERUSER_PASSWORD=None,
    )


@pytest.fixture
def store() -> InMemoryIdentityStore:
    """Identity store seeded with one user per role and an inactive account."""
    store = InMemoryIdentityStore()
    store.add(UserCreate(username="alice", email="alice@example.com", password=PASSWORD,
                         full_name="Alice Admin", role=Role.ADMIN))
    store.add(UserCreate(username="bob", email="bob@example.com", password=PASSWORD,
                         full_name="Bob Manager", role=Role.MANAGER))
    store.add(UserCreate(username="carol", email="carol@example.com", password=PASSWORD,
                         role=Role.USER))
    store.add(UserCreate(username="dave", email="dave@example.com", password=PASSWORD,
                         is_active=False))
    return store


@pytest.fixture
def session() -> Session:
    return Session(session_id=new_session_id())


@pytest.fixture
def make_auth(store, test_settings, clock):
    """Build an authenticator the way the pipeline does for one request."""

    def factory(session: Session, remember_cookie: str = None, client_address: str = "10.0.0.1"):
        return SessionAuthenticator(
            session,
            store,
            client_address=client_address,
            remember_cookie=remember_cookie,
            cookies=ResponseCookies(),
            settings=test_settings,
            clock=clock,
        )

    return factory


@pytest.fixture
def side_effects() -> List[Dict[str, Any]]:
    """Records calls made to the extra test routes."""
    return []


@pytest.fixture
def session_backend(clock) -> InMemorySessionBackend:
    return InMemorySessionBackend(clock=clock)


@pytest.fixture
def app(test_settings, store, clock, side_effects, session_backend):
    """Application with the default route table plus a few probe routes."""

    def configure(router: Router) -> None:
        async def record(ctx, **params):
            side_effects.append({"method": ctx.method, "params": params})
            return {"success": True, "params": params}

        def boom(ctx):
            raise RuntimeError("kaboom")

        router.post("/probe", record)
        router.post("/probe/{item_id}", record)
        router.get("/boom", boom)

    return create_app(
        settings=test_settings,
        identity_store=store,
        session_backend=session_backend,
        configure_routes=configure,
        clock=clock,
    )


@pytest.fixture
def client(app) -> TestClient:
    with TestClient(app, follow_redirects=False) as client:
        yield client


def csrf_from(client: TestClient, path: str = "/login") -> str:
    """Render a form page and pull its CSRF token out of the HTML."""
    response = client.get(path)
    match = CSRF_FIELD_RE.search(response.text)
    assert match, f"no CSRF field on {path}"
    return match.group(1)


def login(client: TestClient, username: str = "alice", password: str = PASSWORD, remember: bool = False):
    data = {"username": username, "password": password, "csrf_token": csrf_from(client)}
    if remember:
        data["remember_me"] = "1"
    return client.post("/login", data=data)


@pytest_asyncio.fixture
async def database():
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.create_all()
    yield db
    await db.close()
