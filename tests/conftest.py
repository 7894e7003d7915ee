"""
Pytest fixtures: an in-memory aiosqlite database seeded with people, posts
and comments, plus a FastAPI TestClient serving them.
"""
from __future__ import annotations

from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from jsonapi_rql.api.main import create_app
from jsonapi_rql.core.settings import AppSettings
from jsonapi_rql.db.base import Base
from jsonapi_rql.db.session import get_async_session, make_session_factory
from jsonapi_rql.jsonapi.resource import ResourceRegistry

from tests.models import make_definitions, seed

TEST_DATABASE_URL = "sqlite+aiosqlite://"


def _make_engine():
    return create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def definitions():
    return make_definitions()


@pytest.fixture
def registry(definitions):
    return ResourceRegistry(definitions)


@pytest_asyncio.fixture
async def session():
    engine = _make_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = make_session_factory(engine)
    async with factory() as db:
        await seed(db)
    async with factory() as db:
        yield db
    await engine.dispose()


@pytest.fixture
def settings():
    return AppSettings(
        JSONAPI_PAGE_SIZE=2,
        JSONAPI_MAX_PAGE_SIZE=50,
        JSONAPI_EXTRA_HEADERS={"X-Api-Version": "1"},
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def app(definitions, settings):
    engine = _make_engine()
    factory = make_session_factory(engine)

    @asynccontextmanager
    async def lifespan(_app):
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with factory() as db:
            await seed(db)
        yield
        await engine.dispose()

    application = create_app(definitions, settings=settings, lifespan=lifespan)

    async def override_session():
        async with factory() as db:
            yield db

    application.dependency_overrides[get_async_session] = override_session
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
