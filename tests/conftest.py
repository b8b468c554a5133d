"""Test fixtures — isolated in-memory databases and a wired test client.

Each test gets its own in-memory SQLite engine (aiosqlite + StaticPool so
every connection sees the same database), with the schema created fresh.
Nothing leaks between tests and no Postgres is needed.

bcrypt runs at its minimum work factor here; the hashing code path is
the same, only cheaper.
"""

import os

# Must be set before gatekeep.config builds its singleton.
os.environ.setdefault("GATEKEEP_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault(
    "GATEKEEP_JWT_SECRET", "test-signing-secret-0123456789abcdef0123456789"
)

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from gatekeep.auth.dependencies import (  # noqa: E402
    get_password_hasher,
    get_token_config,
)
from gatekeep.auth.jwt import TokenIssuer, TokenVerifier  # noqa: E402
from gatekeep.auth.password import PasswordHasher  # noqa: E402
from gatekeep.config import TokenConfig  # noqa: E402
from gatekeep.db.engine import get_db  # noqa: E402
from gatekeep.main import app  # noqa: E402
from gatekeep.services.user_directory import UserDirectory  # noqa: E402
from gatekeep.store.credentials import CredentialStore  # noqa: E402

TEST_SECRET = "test-signing-secret-0123456789abcdef0123456789"
TEST_ISSUER = "gatekeep-test"
TEST_AUDIENCE = "gatekeep-test-api"


@pytest.fixture()
def token_config() -> TokenConfig:
    return TokenConfig(
        secret=TEST_SECRET,
        issuer=TEST_ISSUER,
        audience=TEST_AUDIENCE,
        lifetime=timedelta(hours=1),
    )


@pytest.fixture()
def issuer(token_config) -> TokenIssuer:
    return TokenIssuer(token_config)


@pytest.fixture()
def verifier(token_config) -> TokenVerifier:
    return TokenVerifier(token_config)


@pytest.fixture()
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest_asyncio.fixture()
async def engine():
    """Fresh in-memory database with the users table in place."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )
    await CredentialStore.ensure_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(engine):
    session = AsyncSession(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()


@pytest_asyncio.fixture()
async def directory(db_session, hasher) -> UserDirectory:
    return UserDirectory(db_session, hasher=hasher)


@pytest_asyncio.fixture()
async def client(db_session, token_config, hasher):
    """HTTP client with DB, signing config and hasher overridden for testing.

    Auth is NOT mocked: protected routes run the real bearer-token
    pipeline against token_config.
    """

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_config] = lambda: token_config
    app.dependency_overrides[get_password_hasher] = lambda: hasher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
