"""Test fixtures — in-memory SQLite per test, real auth pipeline.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Env vars are set *before* authcore is imported, so the settings
   singleton (and the process-wide signing key) pick up test values.
2. Each test gets a fresh in-memory SQLite engine (StaticPool keeps the
   single connection alive) with all tables created.
3. get_db is overridden to hand out sessions from that engine; the mailer
   is overridden with a recorder so tests can read the emailed token.

Unlike most suites, nothing overrides authentication — the auth gate and
role checks are what these tests are about.
"""

import os

os.environ.setdefault("AUTHCORE_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTHCORE_JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("AUTHCORE_BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTHCORE_FRONTEND_URL", "http://frontend.test")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from authcore.auth.context import Role  # noqa: E402
from authcore.auth.dependencies import get_token_service  # noqa: E402
from authcore.db.engine import get_db  # noqa: E402
from authcore.db.models import Base  # noqa: E402
from authcore.main import app  # noqa: E402
from authcore.services.mailer import Mailer, get_mailer  # noqa: E402

API = "/api/v1"


class RecordingMailer(Mailer):
    """Keeps every message instead of sending it."""

    def __init__(self):
        self.sent: list[dict] = []
        self.tokens: dict[str, str] = {}

    async def send(self, to: str, subject: str, text: str) -> bool:
        self.sent.append({"to": to, "subject": subject, "text": text})
        return True

    async def send_verification_email(self, to: str, token: str) -> bool:
        self.tokens[to] = token
        return await super().send_verification_email(to, token)


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def mailer():
    return RecordingMailer()


@pytest_asyncio.fixture()
async def client(session_factory, mailer):
    """HTTP client against the real app, with the test database and mailer."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    """Build an Authorization header for any subject/role."""

    def _headers(email: str, role: Role = Role.VISITOR) -> dict[str, str]:
        token = get_token_service().issue(email, role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def admin_headers(auth_headers):
    return auth_headers("root@example.com", Role.ADMIN)


@pytest_asyncio.fixture()
async def active_user(client, mailer):
    """Register + verify a PROPOSER through the API; returns its credentials."""
    creds = {
        "username": "alice",
        "email": "alice@x.com",
        "password": "pw",
        "role": "PROPOSER",
    }
    r = await client.post(f"{API}/auth/register", json=creds)
    assert r.status_code == 201
    user_id = r.json()["user"]["id"]

    r = await client.get(f"{API}/auth/verify", params={"token": mailer.tokens[creds["email"]]})
    assert r.status_code == 302
    return {**creds, "id": user_id}
