"""Pytest configuration and shared fixtures for reminder engine tests."""

import os
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Set test DB before app imports so config/engine use it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("MAIL_API_URL", "")

import reminders.models  # noqa: F401 - register tables
from reminders.config import Settings
from reminders.db.base import Base
from reminders.models import Announcement, Bookmark, Subscription, TrackedApplication, User

pytest_plugins = ["pytest_asyncio"]

NOW = datetime(2024, 6, 1, 0, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite per test so unique constraints are enforced for real and several engines can share it."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'reminders.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        tracker_reminder_lead_days=3,
        tracker_reminder_max_email_items=10,
        mail_api_url="",
    )


class RecordingTransport:
    """Stand-in mail transport that records every digest it is handed."""

    def __init__(self, result: bool = True):
        self.result = result
        self.calls = []

    async def __call__(self, digest):
        self.calls.append(digest)
        return self.result


@pytest.fixture
def transport():
    return RecordingTransport()


class Seeder:
    """Insert committed rows for a test scenario."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def user(self, user_id: str, email: str, *, is_active: bool | None = True) -> User:
        user = User(id=user_id, email=email, is_active=is_active)
        self.session.add(user)
        await self.session.commit()
        return user

    async def subscription(
        self, email: str, token: str, *, is_active: bool = True, verified: bool = True
    ) -> Subscription:
        sub = Subscription(email=email, unsubscribe_token=token, is_active=is_active, verified=verified)
        self.session.add(sub)
        await self.session.commit()
        return sub

    async def subscribed_user(self, user_id: str, email: str, token: str) -> User:
        user = await self.user(user_id, email)
        await self.subscription(email, token)
        return user

    async def tracked(
        self,
        user_id: str,
        deadline: datetime | None,
        *,
        announcement_id: str | None = "ann-1",
        reminder_at: datetime | None = None,
        title: str = "UPSC Job 2024",
        slug: str = "upsc-job-2024",
        organization: str | None = "UPSC",
    ) -> TrackedApplication:
        row = TrackedApplication(
            user_id=user_id,
            announcement_id=announcement_id,
            slug=slug,
            type="job",
            title=title,
            organization=organization,
            deadline=deadline,
            reminder_at=reminder_at,
        )
        self.session.add(row)
        await self.session.commit()
        return row

    async def announcement(
        self,
        announcement_id: str,
        deadline: datetime | None,
        *,
        title: str = "SSC CGL 2024",
        is_active: bool | None = True,
        status: str | None = "published",
        publish_at: datetime | None = None,
        organization: str | None = "SSC",
    ) -> Announcement:
        row = Announcement(
            id=announcement_id,
            title=title,
            slug=f"{announcement_id}-slug",
            type="job",
            organization=organization,
            deadline=deadline,
            is_active=is_active,
            status=status,
            publish_at=publish_at,
        )
        self.session.add(row)
        await self.session.commit()
        return row

    async def bookmark(self, user_id: str, announcement_id: str) -> Bookmark:
        row = Bookmark(user_id=user_id, announcement_id=announcement_id)
        self.session.add(row)
        await self.session.commit()
        return row


@pytest.fixture
def seed(session):
    return Seeder(session)
