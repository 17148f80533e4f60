"""Tests for dispatch reservations and in-app reminder upserts."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from reminders.models.reminder_dispatch_log import ReminderDispatchLog
from reminders.models.user_notification import UserNotification
from reminders.schemas.reminders import ReminderCandidate, ReminderChannel, ReminderSource
from reminders.services.in_app_notifications import InAppOutcome, upsert_in_app_reminder
from reminders.services.reminder_dispatch import ReservationOutcome, reserve_dispatch

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _candidate(source: ReminderSource = ReminderSource.TRACKED, **overrides) -> ReminderCandidate:
    data = {
        "user_id": "u1",
        "source": source,
        "announcement_id": "ann-1",
        "title": "UPSC Job",
        "type": "job",
        "slug": "upsc-job",
        "organization": "UPSC",
        "deadline": datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return ReminderCandidate(**data)


async def _count(session, model) -> int:
    r = await session.execute(select(func.count()).select_from(model))
    return r.scalar_one()


@pytest.mark.asyncio
async def test_reserve_then_duplicate(session):
    """Second reservation of the same key is denied and leaves a single row."""
    c = _candidate()
    assert await reserve_dispatch(session, c, ReminderChannel.IN_APP, NOW) is ReservationOutcome.RESERVED
    assert await reserve_dispatch(session, c, ReminderChannel.IN_APP, NOW) is ReservationOutcome.DUPLICATE

    rows = (await session.execute(select(ReminderDispatchLog))).scalars().all()
    assert len(rows) == 1
    assert rows[0].dedupe_key == "in_app:tracked:u1:ann-1:2024-06-03"
    assert rows[0].deadline_date == "2024-06-03"
    assert rows[0].channel == "in_app"
    assert rows[0].source == "tracked"


@pytest.mark.asyncio
async def test_reserve_channels_are_independent(session):
    c = _candidate()
    assert await reserve_dispatch(session, c, ReminderChannel.IN_APP, NOW) is ReservationOutcome.RESERVED
    assert await reserve_dispatch(session, c, ReminderChannel.EMAIL, NOW) is ReservationOutcome.RESERVED
    assert await _count(session, ReminderDispatchLog) == 2


@pytest.mark.asyncio
async def test_reserve_new_deadline_day_is_a_new_reminder(session):
    """A moved deadline produces a fresh reservation."""
    c = _candidate()
    moved = _candidate(deadline=c.deadline + timedelta(days=1))
    assert await reserve_dispatch(session, c, ReminderChannel.EMAIL, NOW) is ReservationOutcome.RESERVED
    assert await reserve_dispatch(session, moved, ReminderChannel.EMAIL, NOW) is ReservationOutcome.RESERVED


@pytest.mark.asyncio
async def test_reserve_sources_are_independent(session):
    tracked = _candidate(ReminderSource.TRACKED)
    bookmark = _candidate(ReminderSource.BOOKMARK)
    assert await reserve_dispatch(session, tracked, ReminderChannel.EMAIL, NOW) is ReservationOutcome.RESERVED
    assert await reserve_dispatch(session, bookmark, ReminderChannel.EMAIL, NOW) is ReservationOutcome.RESERVED


@pytest.mark.asyncio
async def test_reserve_without_deadline_uses_none_key(session):
    c = _candidate(deadline=None)
    assert await reserve_dispatch(session, c, ReminderChannel.EMAIL, NOW) is ReservationOutcome.RESERVED
    row = (await session.execute(select(ReminderDispatchLog))).scalar_one()
    assert row.dedupe_key == "email:tracked:u1:ann-1:none"
    assert row.deadline_date is None


@pytest.mark.asyncio
async def test_reserve_session_usable_after_duplicate(session):
    """A denied reservation rolls back cleanly; later reservations on the same session still work."""
    c = _candidate()
    await reserve_dispatch(session, c, ReminderChannel.EMAIL, NOW)
    assert await reserve_dispatch(session, c, ReminderChannel.EMAIL, NOW) is ReservationOutcome.DUPLICATE
    other = _candidate(user_id="u2")
    assert await reserve_dispatch(session, other, ReminderChannel.EMAIL, NOW) is ReservationOutcome.RESERVED


@pytest.mark.asyncio
async def test_reserve_store_failure_is_failed_not_duplicate():
    """Store errors deny the reservation without being counted as already sent."""
    session = AsyncMock()
    session.add = MagicMock()
    session.commit = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("database unavailable")))

    outcome = await reserve_dispatch(session, _candidate(), ReminderChannel.EMAIL, NOW)

    assert outcome is ReservationOutcome.FAILED
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_upsert_in_app_is_idempotent(session):
    """Two upserts for the same key keep one row with created_at from the first insert."""
    c = _candidate()
    first = await upsert_in_app_reminder(session, c, NOW)
    second = await upsert_in_app_reminder(session, c.model_copy(update={"title": "Renamed"}), NOW + timedelta(hours=1))

    assert first is InAppOutcome.CREATED
    assert second is InAppOutcome.EXISTING
    row = (await session.execute(select(UserNotification))).scalar_one()
    assert row.title == "UPSC Job"
    assert row.source == "reminder:tracked"
    assert row.read_at is None
    assert row.created_at.replace(tzinfo=None) == NOW.replace(tzinfo=None)


@pytest.mark.asyncio
async def test_upsert_in_app_separate_rows_per_source(session):
    await upsert_in_app_reminder(session, _candidate(ReminderSource.TRACKED), NOW)
    await upsert_in_app_reminder(session, _candidate(ReminderSource.BOOKMARK), NOW)

    r = await session.execute(select(UserNotification.source).order_by(UserNotification.source))
    assert r.scalars().all() == ["reminder:bookmark", "reminder:tracked"]


@pytest.mark.asyncio
async def test_upsert_in_app_failure_is_reported():
    session = AsyncMock()
    bind = MagicMock()
    bind.dialect.name = "postgresql"
    session.get_bind = MagicMock(return_value=bind)
    session.execute = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("timeout")))

    outcome = await upsert_in_app_reminder(session, _candidate(), NOW)

    assert outcome is InAppOutcome.FAILED
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_reserve_blank_identity_fails_without_writing(session):
    outcome = await reserve_dispatch(session, _candidate(user_id=" "), ReminderChannel.EMAIL, NOW)

    assert outcome is ReservationOutcome.FAILED
    assert await _count(session, ReminderDispatchLog) == 0
