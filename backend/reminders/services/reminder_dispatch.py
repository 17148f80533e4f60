"""
Dispatch reservation: claim (channel, source, user, announcement, deadline day) before sending.

The unique index on reminder_dispatch_logs.dedupe_key is the only cross-process
mutual exclusion; whichever insert commits first owns the reminder.
"""

import enum
import logging
from datetime import datetime, timezone

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reminders.models.reminder_dispatch_log import ReminderDispatchLog
from reminders.schemas.reminders import DedupeKey, ReminderCandidate, ReminderChannel

logger = logging.getLogger(__name__)


class ReservationOutcome(str, enum.Enum):
    RESERVED = "reserved"
    DUPLICATE = "duplicate"  # already dispatched by this or another cycle
    FAILED = "failed"  # store error; nothing persisted, eligible next cycle


async def reserve_dispatch(
    session: AsyncSession,
    candidate: ReminderCandidate,
    channel: ReminderChannel,
    now: datetime | None = None,
) -> ReservationOutcome:
    """Insert the dispatch log row and commit it right away so the claim is durable before any side effect."""
    try:
        key = DedupeKey.for_candidate(candidate, channel)
    except ValidationError as e:
        logger.warning(
            "TrackerReminders: unusable reminder identity user_id=%r announcement_id=%r: %s",
            candidate.user_id,
            candidate.announcement_id,
            e,
        )
        return ReservationOutcome.FAILED
    session.add(
        ReminderDispatchLog(
            dedupe_key=str(key),
            user_id=candidate.user_id,
            channel=channel.value,
            source=candidate.source.value,
            announcement_id=candidate.announcement_id,
            deadline_date=key.deadline_label,
            sent_at=now or datetime.now(timezone.utc),
        )
    )
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.debug("TrackerReminders: dispatch %s already reserved", key)
        return ReservationOutcome.DUPLICATE
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("TrackerReminders: failed to reserve dispatch slot %s: %s", key, e)
        return ReservationOutcome.FAILED
    return ReservationOutcome.RESERVED
