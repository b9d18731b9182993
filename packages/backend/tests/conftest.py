"""Test fixtures — a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Env vars are set BEFORE anything imports tasktrack, so the settings
   singleton picks up a test signing secret, cheap bcrypt rounds and an
   SQLite URL.
2. Each test gets its own in-memory SQLite engine (StaticPool keeps the
   single connection alive) with the schema created from the models.
3. The app's get_db is overridden to hand out that session. Auth is NOT
   overridden — tests register users and send real bearer tokens, so
   the whole token → principal → owner-scoped query path is exercised.
"""

import os

os.environ.setdefault("TASKTRACK_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("TASKTRACK_JWT_SECRET", "test-secret-that-is-at-least-32-bytes-long")
os.environ.setdefault("TASKTRACK_BCRYPT_ROUNDS", "4")

import uuid  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tasktrack.auth.jwt import get_token_codec  # noqa: E402
from tasktrack.auth.password import PasswordHasher  # noqa: E402
from tasktrack.auth.resolver import PrincipalResolver  # noqa: E402
from tasktrack.db.engine import get_db  # noqa: E402
from tasktrack.db.models import Base  # noqa: E402
from tasktrack.db.stores import CredentialStore  # noqa: E402
from tasktrack.main import app  # noqa: E402


def _enable_foreign_keys(dbapi_connection, _record):
    # SQLite ignores ON DELETE CASCADE unless this is on
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture()
async def db_session():
    """Per-test session on a brand-new in-memory database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session = AsyncSession(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest_asyncio.fixture()
async def client(db_session):
    """HTTP client with only get_db overridden — auth runs for real."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def resolver(db_session):
    """A PrincipalResolver wired to the test session and the app's codec."""
    return PrincipalResolver(
        credentials=CredentialStore(db_session),
        codec=get_token_codec(),
        hasher=PasswordHasher(rounds=4),
    )


@pytest.fixture
def register(client):
    """Register a user over HTTP; returns (token, username).

    Usernames default to a random suffix so tests never collide.
    """
    async def _register(username=None, email=None, password="secret1"):
        username = username or f"user-{uuid.uuid4().hex[:8]}"
        email = email or f"{username}@x.com"
        r = await client.post(
            "/auth/register",
            json={"username": username, "email": email, "password": password},
        )
        assert r.status_code == 201, r.text
        return r.json()["token"], username

    return _register
