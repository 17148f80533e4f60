"""Email side of deadline reminders: per-user queue, recipient + consent resolution, one digest per user."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from reminders.models.subscription import Subscription
from reminders.models.user import User
from reminders.schemas.reminders import DigestAnnouncement, DigestEmail, ReminderCandidate

logger = logging.getLogger(__name__)

MailTransport = Callable[[DigestEmail], Awaitable[bool]]


def normalize_email(email: str) -> str:
    return email.strip().lower()


def window_label(lead_days: int) -> str:
    return f"Deadline reminders for the next {lead_days} day(s)"


@dataclass
class EmailBatch:
    """Email-reserved candidates grouped by user, in reservation order."""

    by_user: dict[str, list[ReminderCandidate]] = field(default_factory=dict)

    def add(self, candidate: ReminderCandidate) -> None:
        self.by_user.setdefault(candidate.user_id, []).append(candidate)

    @property
    def user_ids(self) -> list[str]:
        return list(self.by_user)

    def __len__(self) -> int:
        return len(self.by_user)


@dataclass
class DigestSendStats:
    sent: int = 0
    skipped_no_subscription: int = 0
    failed: int = 0


async def load_user_email_map(session: AsyncSession, user_ids: list[str]) -> dict[str, str]:
    """user_id -> normalized email for active (or legacy unset) accounts."""
    if not user_ids:
        return {}
    r = await session.execute(
        select(User.id, User.email).where(
            User.id.in_(user_ids),
            or_(User.is_active.is_(True), User.is_active.is_(None)),
        )
    )
    return {row[0]: normalize_email(row[1]) for row in r.all() if row[1] and row[1].strip()}


async def load_subscription_token_map(session: AsyncSession, emails: list[str]) -> dict[str, str]:
    """normalized email -> unsubscribe token, only for active and verified subscriptions."""
    if not emails:
        return {}
    r = await session.execute(
        select(Subscription.email, Subscription.unsubscribe_token).where(
            Subscription.email.in_(emails),
            Subscription.is_active.is_(True),
            Subscription.verified.is_(True),
        )
    )
    return {normalize_email(email): token for email, token in r.all() if email and token}


def build_digest(
    email: str,
    items: list[ReminderCandidate],
    unsubscribe_token: str,
    *,
    lead_days: int,
    max_items: int,
) -> DigestEmail:
    return DigestEmail(
        email=email,
        announcements=[
            DigestAnnouncement(
                title=item.title,
                slug=item.slug,
                type=item.type,
                category=item.source.digest_category,
                organization=item.organization or "Unknown",
                deadline=item.deadline,
            )
            for item in items[:max_items]
        ],
        unsubscribe_token=unsubscribe_token,
        frequency="daily",
        window_label=window_label(lead_days),
    )


async def send_reminder_digests(
    session: AsyncSession,
    batch: EmailBatch,
    transport: MailTransport,
    *,
    lead_days: int,
    max_items: int,
) -> DigestSendStats:
    stats = DigestSendStats()
    if not batch:
        return stats

    emails_by_user = await load_user_email_map(session, batch.user_ids)
    tokens = await load_subscription_token_map(session, sorted(set(emails_by_user.values())))

    for user_id, items in batch.by_user.items():
        email = emails_by_user.get(user_id)
        token = tokens.get(email) if email else None
        if not email or not token:
            # Email reservations for these items are already consumed and will not be retried:
            # reminders stay at-most-once even though nothing was delivered.
            stats.skipped_no_subscription += len(items)
            logger.debug(
                "TrackerReminders: no deliverable subscription for user_id=%s, skipping %s item(s)", user_id, len(items)
            )
            continue

        digest = build_digest(email, items, token, lead_days=lead_days, max_items=max_items)
        try:
            delivered = await transport(digest)
        except Exception as e:
            logger.exception("TrackerReminders: digest send failed for user_id=%s: %s", user_id, e)
            stats.failed += 1
            continue
        if delivered:
            stats.sent += 1
        else:
            stats.failed += 1
    return stats
