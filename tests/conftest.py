import os
import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# In-memory store; no MongoDB or Firebase needed
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")
os.environ.setdefault("FIREBASE_PROJECT_ID", "checkin-test")

from checkin.core.exceptions import BadRequestError, UnauthorizedError  # noqa: E402
from checkin.core.security import create_session_cookie  # noqa: E402
from checkin.deps import SESSION_COOKIE_NAME  # noqa: E402
from checkin.services.identity import Identity, IdentityProvider, get_identity_provider  # noqa: E402
from checkin.store.base import get_store  # noqa: E402
from checkin.store.memory import MemoryStore  # noqa: E402
from checkin.store.records import StationRecord, UserRecord  # noqa: E402


class FakeIdentityProvider(IdentityProvider):
    def __init__(self):
        self.accounts: dict[str, dict] = {}
        self.tokens: dict[str, Identity] = {}

    async def verify_id_token(self, token: str) -> Identity:
        identity = self.tokens.get(token)
        if identity is None:
            raise UnauthorizedError("Invalid sign-in token")
        return identity

    async def create_user(self, name: str, email: str, password: str) -> str:
        if any(a["email"] == email for a in self.accounts.values()):
            raise BadRequestError("EMAIL_EXISTS")
        uid = f"uid-{len(self.accounts) + 1}"
        self.accounts[uid] = {"name": name, "email": email, "password": password}
        return uid

    async def delete_user(self, uid: str) -> None:
        self.accounts.pop(uid, None)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def make_user(store):
    def _make(uid: str = "attendee-1", role: str = "attendee", total_points: int = 0, **fields) -> UserRecord:
        user = UserRecord(
            id=uid,
            email=fields.pop("email", f"{uid}@example.com"),
            name=fields.pop("name", uid),
            role=role,
            total_points=total_points,
            **fields,
        )
        store.users[uid] = user
        return user
    return _make


@pytest.fixture
def make_station(store):
    def _make(name: str = "Robotics booth", points: int = 20, active: bool = True, **fields) -> StationRecord:
        station = StationRecord(id=uuid.uuid4().hex, name=name, points=points, active=active, **fields)
        store.stations[station.id] = station
        return station
    return _make


@pytest.fixture
def ledger_consistent(store):
    """Assert the per-user point totals match the scan ledger and pairs are unique."""
    def _check() -> None:
        pairs = [(s.user_id, s.station_id) for s in store.scans.values()]
        assert len(pairs) == len(set(pairs))
        for user in store.users.values():
            earned = sum(s.points_earned for s in store.scans.values() if s.user_id == user.id)
            assert user.total_points == earned, user.id
    return _check


@pytest_asyncio.fixture
async def client(store, identity) -> AsyncGenerator[AsyncClient, None]:
    from checkin.main import app
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_identity_provider] = lambda: identity
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def login():
    def _login(client: AsyncClient, user_id: str) -> None:
        client.cookies.set(SESSION_COOKIE_NAME, create_session_cookie({"user_id": user_id}))
    return _login
