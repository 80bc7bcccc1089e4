import os
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from fastapi import Request
from httpx import ASGITransport, AsyncClient
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.locks import LocalOperationLock
from libs.common.rate_limit import limiter
from libs.db.base import Base
from libs.db.session import get_async_db
from services.rewards_service import models as _rewards_models  # noqa: F401
from services.rewards_service.app.main import app
from services.rewards_service.dependencies import (
    get_balance_source,
    get_notifier,
    get_raffle_lock,
)
from services.rewards_service.services.balances import StaticWalletBalanceSource

settings = get_settings()


class RecordingNotificationSink:
    """Collects notifications instead of delivering them."""

    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []

    async def notify(self, user_id: str, subject: str, body: str) -> None:
        self.sent.append((user_id, subject, body))


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    A fresh database per test. Defaults to a SQLite file so that several
    sessions can see each other's commits; set TEST_DATABASE_URL to run
    against Postgres instead.
    """
    db_url = os.environ.get("TEST_DATABASE_URL") or (
        f"sqlite+aiosqlite:///{tmp_path / 'rewards.db'}"
    )
    connect_args = {}
    if make_url(db_url).get_backend_name() == "sqlite":
        connect_args["timeout"] = 30

    engine = create_async_engine(db_url, connect_args=connect_args)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session on the per-test database. Commits are real."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def wallet_balances() -> dict[str, Optional[int]]:
    """Mutable wallet → raw balance map served to the accrual cron."""
    return {}


class ActingUser:
    """Switches the identity the test client is authenticated as."""

    def __init__(self):
        self.user = AuthUser(user_id="member-1", email="member-1@example.com")

    def as_user(self, user_id: str, role: str = "authenticated") -> AuthUser:
        self.user = AuthUser(user_id=user_id, role=role)
        return self.user

    def as_service(self, name: str = "members_service") -> AuthUser:
        return self.as_user(name, role="service_role")


@pytest.fixture
def acting() -> ActingUser:
    return ActingUser()


@pytest_asyncio.fixture
async def rewards_client(
    session_factory, acting, notifier, wallet_balances
) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient for the rewards app with the DB, auth and external
    collaborators overridden.
    """

    async def _db():
        async with session_factory() as session:
            yield session

    def _current_user(request: Request) -> AuthUser:
        request.state.user = acting.user
        return acting.user

    lock = LocalOperationLock("raffle-weekly", blocking_timeout=5)
    limiter.reset()

    app.dependency_overrides[get_async_db] = _db
    app.dependency_overrides[get_current_user] = _current_user
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_balance_source] = lambda: StaticWalletBalanceSource(
        wallet_balances
    )
    app.dependency_overrides[get_raffle_lock] = lambda: lock

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def cron_headers() -> dict:
    return {"x-cron-secret": settings.CRON_SECRET}
