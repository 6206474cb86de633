"""Shared fixtures for the grocery service test suite.

Each test gets its own database (a SQLite file under ``tmp_path`` unless
``TEST_DATABASE_URL`` points elsewhere) with every table created from the
models, and an app whose DB and auth dependencies are overridden.
"""

import os
from contextlib import contextmanager
from typing import AsyncGenerator, Iterator, Optional

# Settings are read at import time; point them at the test environment first
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL", "sqlite+aiosqlite:///./.pytest_grocery.db"
)

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

# Optional local overrides (e.g. TEST_DATABASE_URL for a Postgres run)
env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=False)

from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser, Role
from libs.common.config import get_settings
from libs.db.base import Base
from libs.db.session import get_async_db
from services.grocery_service import models as _grocery_models  # noqa: F401

get_settings.cache_clear()
settings = get_settings()

DEFAULT_USER_ID = "test-customer"


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


def make_user(
    user_id: str = DEFAULT_USER_ID,
    role: str = Role.CUSTOMER.value,
    email: Optional[str] = "customer@example.com",
) -> AuthUser:
    return AuthUser(user_id=user_id, email=email, role=role)


def make_admin_user(user_id: str = "test-admin") -> AuthUser:
    return make_user(user_id=user_id, role=Role.ADMIN.value, email="admin@example.com")


def make_delivery_user(user_id: str = "test-rider") -> AuthUser:
    return make_user(
        user_id=user_id, role=Role.DELIVERY.value, email="rider@example.com"
    )


@contextmanager
def override_auth(app: FastAPI, user: AuthUser) -> Iterator[AuthUser]:
    """Temporarily resolve every request on ``app`` to ``user``."""
    previous = app.dependency_overrides.get(get_current_user)
    app.dependency_overrides[get_current_user] = lambda: user
    try:
        yield user
    finally:
        if previous is None:
            app.dependency_overrides.pop(get_current_user, None)
        else:
            app.dependency_overrides[get_current_user] = previous


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    """Let SQLAlchemy own BEGIN so savepoints and write locks behave.

    ``BEGIN IMMEDIATE`` takes the write lock up front, serialising concurrent
    writers the way row locks do on PostgreSQL.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    db_url = os.environ.get("TEST_DATABASE_URL") or (
        f"sqlite+aiosqlite:///{tmp_path / 'grocery.db'}"
    )
    is_sqlite = db_url.startswith("sqlite")

    engine = create_async_engine(
        db_url, connect_args={"timeout": 30} if is_sqlite else {}
    )
    if is_sqlite:
        _enable_sqlite_transactions(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Factory mirroring ``libs.db.config.AsyncSessionLocal`` on the test engine."""
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# App / HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def grocery_app(db_session) -> AsyncGenerator[FastAPI, None]:
    from services.grocery_service.app.main import create_app

    app = create_app()
    app.dependency_overrides[get_async_db] = lambda: db_session
    app.dependency_overrides[get_current_user] = lambda: make_user()
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(grocery_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=grocery_app), base_url="http://test"
    ) as ac:
        yield ac
