"""Read-only access to the announcement catalog used by the reminder engine."""

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from reminders.models.announcement import Announcement
from reminders.schemas.reminders import AnnouncementSummary

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_RANGE_LIMIT = 100


def live_announcement_filter(now: datetime):
    """Visible to the public: active (or unset) and published, unset, or scheduled with publish_at reached."""
    return and_(
        or_(Announcement.is_active.is_(True), Announcement.is_active.is_(None)),
        or_(
            Announcement.status == "published",
            Announcement.status.is_(None),
            and_(Announcement.status == "scheduled", Announcement.publish_at <= now),
        ),
    )


async def get_by_deadline_range(
    session: AsyncSession,
    start: datetime,
    end: datetime,
    limit: int = DEFAULT_DEADLINE_RANGE_LIMIT,
    *,
    now: datetime | None = None,
) -> list[AnnouncementSummary]:
    """Live announcements with start <= deadline <= end, soonest deadline first."""
    now = now or datetime.now(timezone.utc)
    r = await session.execute(
        select(Announcement)
        .where(
            live_announcement_filter(now),
            Announcement.deadline >= start,
            Announcement.deadline <= end,
        )
        .order_by(Announcement.deadline.asc())
        .limit(limit or DEFAULT_DEADLINE_RANGE_LIMIT)
    )
    rows = r.scalars().all()
    logger.debug("Announcements: %s with deadline in [%s, %s]", len(rows), start.isoformat(), end.isoformat())
    return [AnnouncementSummary.model_validate(row) for row in rows]
