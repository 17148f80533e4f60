"""Collect deadline reminder candidates from tracked applications and bookmarks, and merge them."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from reminders.models.bookmark import Bookmark
from reminders.models.tracked_application import TrackedApplication
from reminders.schemas.reminders import ReminderCandidate, ReminderSource
from reminders.services.announcements import get_by_deadline_range

logger = logging.getLogger(__name__)

# Per-cycle scan caps; anything beyond is picked up by a later cycle
MAX_TRACKED_SCAN = 400
MAX_ANNOUNCEMENT_SCAN = 600


def reminder_horizon(now: datetime, lead_days: int) -> datetime:
    return now + timedelta(days=lead_days)


async def collect_tracked_candidates(
    session: AsyncSession,
    now: datetime,
    horizon: datetime,
    *,
    limit: int = MAX_TRACKED_SCAN,
) -> list[ReminderCandidate]:
    """Tracked applications with now <= deadline <= horizon whose reminder_at gate is unset or already passed."""
    r = await session.execute(
        select(TrackedApplication)
        .where(
            TrackedApplication.deadline >= now,
            TrackedApplication.deadline <= horizon,
            or_(TrackedApplication.reminder_at.is_(None), TrackedApplication.reminder_at <= now),
        )
        .order_by(TrackedApplication.deadline.asc())
        .limit(limit)
    )
    return [
        ReminderCandidate(
            user_id=row.user_id,
            source=ReminderSource.TRACKED,
            announcement_id=row.announcement_id or f"tracked:{row.id}",
            title=row.title,
            type=row.type,
            slug=row.slug,
            organization=row.organization,
            deadline=row.deadline,
        )
        for row in r.scalars().all()
    ]


async def collect_bookmark_candidates(
    session: AsyncSession,
    now: datetime,
    horizon: datetime,
    *,
    limit: int = MAX_ANNOUNCEMENT_SCAN,
) -> list[ReminderCandidate]:
    """One candidate per bookmark on a live announcement whose deadline falls in [now, horizon]."""
    due = await get_by_deadline_range(session, now, horizon, limit, now=now)
    if not due:
        return []
    by_id = {a.id: a for a in due}

    r = await session.execute(select(Bookmark).where(Bookmark.announcement_id.in_(list(by_id))))
    results: list[ReminderCandidate] = []
    for bookmark in r.scalars().all():
        announcement = by_id.get(bookmark.announcement_id)
        if announcement is None:
            continue
        results.append(
            ReminderCandidate(
                user_id=bookmark.user_id,
                source=ReminderSource.BOOKMARK,
                announcement_id=bookmark.announcement_id,
                title=announcement.title,
                type=announcement.type,
                slug=announcement.slug,
                organization=announcement.organization,
                deadline=announcement.deadline,
            )
        )
    return results


def merge_candidates(candidates: list[ReminderCandidate]) -> tuple[list[ReminderCandidate], int]:
    """
    Drop repeated (user_id, announcement_id, source) entries, keeping the first.
    Tracked and bookmark candidates for the same announcement stay separate.
    Returns (unique candidates, number dropped).
    """
    unique: dict[tuple, ReminderCandidate] = {}
    for candidate in candidates:
        unique.setdefault(candidate.merge_key, candidate)
    return list(unique.values()), len(candidates) - len(unique)
