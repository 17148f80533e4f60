"""In-app reminder notifications: one row per (user, announcement, source), created once and never overwritten."""

import enum
import logging
from datetime import datetime, timezone

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reminders.models.user_notification import UserNotification
from reminders.schemas.reminders import ReminderCandidate

logger = logging.getLogger(__name__)


class InAppOutcome(str, enum.Enum):
    CREATED = "created"
    EXISTING = "existing"
    FAILED = "failed"


def _dialect_insert(session: AsyncSession):
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


async def upsert_in_app_reminder(
    session: AsyncSession,
    candidate: ReminderCandidate,
    now: datetime | None = None,
) -> InAppOutcome:
    """INSERT ... ON CONFLICT DO NOTHING keyed by (user_id, announcement_id, source label)."""
    insert = _dialect_insert(session)
    stmt = (
        insert(UserNotification)
        .values(
            user_id=candidate.user_id,
            announcement_id=candidate.announcement_id,
            title=candidate.title,
            type=candidate.type,
            slug=candidate.slug,
            organization=candidate.organization,
            source=candidate.source.notification_label,
            created_at=now or datetime.now(timezone.utc),
            read_at=None,
        )
        .on_conflict_do_nothing(index_elements=["user_id", "announcement_id", "source"])
    )
    try:
        r = await session.execute(stmt)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(
            "TrackerReminders: failed to upsert in-app reminder user_id=%s announcement_id=%s: %s",
            candidate.user_id,
            candidate.announcement_id,
            e,
        )
        return InAppOutcome.FAILED
    return InAppOutcome.CREATED if r.rowcount else InAppOutcome.EXISTING
