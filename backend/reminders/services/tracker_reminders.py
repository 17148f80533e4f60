"""
Deadline reminders for tracked applications and bookmarked announcements.

One pass: collect candidates -> merge -> per item reserve in_app (then notify) and
reserve email (then queue) -> one digest email per user. Reservations in
reminder_dispatch_logs make every (channel, source, user, announcement, deadline day)
go out at most once, across repeated cycles and across processes.
"""

import logging
from datetime import datetime, timezone

from prometheus_client import Counter
from sqlalchemy.ext.asyncio import AsyncSession

from reminders.config import Settings, settings as default_settings
from reminders.schemas.reminders import ReminderChannel, ReminderRunResult
from reminders.services.in_app_notifications import InAppOutcome, upsert_in_app_reminder
from reminders.services.mail_transport import send_digest_email
from reminders.services.reminder_candidates import (
    collect_bookmark_candidates,
    collect_tracked_candidates,
    merge_candidates,
    reminder_horizon,
)
from reminders.services.reminder_dispatch import ReservationOutcome, reserve_dispatch
from reminders.services.reminder_email import EmailBatch, MailTransport, send_reminder_digests

logger = logging.getLogger(__name__)

REMINDER_DISPATCH_TOTAL = Counter(
    "tracker_reminder_dispatch_total",
    "Deadline reminder dispatch attempts by channel and outcome",
    ["channel", "outcome"],
)


async def process_tracker_reminders_once(
    session: AsyncSession,
    now: datetime | None = None,
    *,
    settings: Settings | None = None,
    transport: MailTransport | None = None,
) -> ReminderRunResult:
    """Run exactly one reminder pass and return its counters. Collector errors propagate to the caller."""
    settings = settings or default_settings
    transport = transport or send_digest_email
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    lead_days = settings.tracker_reminder_lead_days
    horizon = reminder_horizon(now, lead_days)

    # Sequential on purpose: one AsyncSession cannot run two queries at once.
    # A failure in either source aborts the whole pass.
    tracked = await collect_tracked_candidates(session, now, horizon)
    bookmarked = await collect_bookmark_candidates(session, now, horizon)
    candidates = tracked + bookmarked
    if not candidates:
        return ReminderRunResult()

    unique, duplicates = merge_candidates(candidates)
    result = ReminderRunResult(candidates=len(unique), deduped=duplicates)
    batch = EmailBatch()

    for candidate in unique:
        in_app = await reserve_dispatch(session, candidate, ReminderChannel.IN_APP, now)
        REMINDER_DISPATCH_TOTAL.labels(channel="in_app", outcome=in_app.value).inc()
        if in_app is ReservationOutcome.RESERVED:
            outcome = await upsert_in_app_reminder(session, candidate, now)
            if outcome is InAppOutcome.FAILED:
                # Reservation stays recorded: the reminder counts as sent but is not visible.
                result.in_app_failed += 1
            else:
                result.in_app_sent += 1
        elif in_app is ReservationOutcome.DUPLICATE:
            result.deduped += 1
        else:
            result.reservation_failed += 1

        email = await reserve_dispatch(session, candidate, ReminderChannel.EMAIL, now)
        REMINDER_DISPATCH_TOTAL.labels(channel="email", outcome=email.value).inc()
        if email is ReservationOutcome.RESERVED:
            batch.add(candidate)
        elif email is ReservationOutcome.DUPLICATE:
            result.deduped += 1
        else:
            result.reservation_failed += 1

    stats = await send_reminder_digests(
        session,
        batch,
        transport,
        lead_days=lead_days,
        max_items=settings.tracker_reminder_max_email_items,
    )
    result.email_sent = stats.sent
    result.email_skipped_no_subscription = stats.skipped_no_subscription
    result.email_failed = stats.failed
    return result


async def run_tracker_reminders_once(now: datetime | None = None) -> ReminderRunResult:
    """Scheduler entry point: one pass on a fresh session from the shared session maker."""
    from reminders.db.session import async_session_maker

    async with async_session_maker() as session:
        return await process_tracker_reminders_once(session, now)
