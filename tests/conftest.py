import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-chars")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["WORK_SAFE_URLS"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sugar.database import Base, get_async_session
from sugar.main import app
from sugar.models.forum_model import ForumCategory
from sugar.models.user_model import User
from sugar.utils.token_utils import create_access_token


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def make_user(db):
    async def _make(username: str, **flags) -> User:
        user = User(username=username, **flags)
        db.add(user)
        await db.commit()
        return user
    return _make


@pytest.fixture
def make_category(db):
    async def _make(name: str = "General", trusted: bool = False) -> ForumCategory:
        category = ForumCategory(name=name, trusted=trusted, discussions_count=0)
        db.add(category)
        await db.commit()
        return category
    return _make


@pytest_asyncio.fixture
async def client(db):
    async def _session_override():
        yield db

    app.dependency_overrides[get_async_session] = _session_override
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def auth():
    return auth_headers
