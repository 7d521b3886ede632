"""
Test infrastructure for the Quill API.

Strategy
--------
- SQLite in-memory via aiosqlite, so no Postgres instance is needed.
- StaticPool makes every session share the one in-memory connection;
  a second connection would see an empty database.
- The app's get_db dependency is overridden with the test session factory.
- All tables are created before each test and dropped after it.
- Users are inserted directly and authenticated with tokens minted by
  ``quill.security.create_access_token``, standing in for the external
  token issuer.
"""
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from quill.database import Base, get_db
from quill.main import app
from quill.middleware import install_query_counter
from quill.models import User, UserRole
from quill.security import create_access_token

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def auth_headers(user_id: int) -> dict[str, str]:
    token = create_access_token({"sub": str(user_id)})
    return {"Authorization": f"Bearer {token}"}


async def make_user(username: str, role: UserRole = UserRole.USER) -> dict:
    """Insert a committed user and return ``{"id", "headers"}`` for it."""
    async with async_session_test() as session:
        user = User(username=username, email=f"{username}@example.com", role=role.value)
        session.add(user)
        await session.commit()
        return {"id": user.id, "headers": auth_headers(user.id)}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live session for tests that call services directly."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def admin() -> dict:
    return await make_user("admin", UserRole.ADMIN)


@pytest_asyncio.fixture
async def author() -> dict:
    return await make_user("author")


@pytest_asyncio.fixture
async def reader() -> dict:
    return await make_user("reader")
