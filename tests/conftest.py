import os

os.environ.setdefault("RATE_LIMIT", "10000/minute")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from functools import partial

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from app.core.database.engine import (
    enable_sqlite_foreign_keys,
    get_db,
    get_session_factory,
    init_db,
    make_session_factory,
)
from app.features.realtime.broker import ChannelBroker
from app.main import app as fastapi_app
from factories import create_org, create_token, create_user


@pytest.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    enable_sqlite_foreign_keys(test_engine)
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_org(session_factory):
    return partial(create_org, session_factory)


@pytest.fixture
def make_user(session_factory):
    return partial(create_user, session_factory)


@pytest.fixture
def auth_headers(session_factory):
    async def _headers(user):
        token = await create_token(session_factory, user)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def broker():
    return ChannelBroker()


@pytest.fixture
def app(session_factory, broker):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_session_factory] = lambda: session_factory
    fastapi_app.state.broker = broker
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
