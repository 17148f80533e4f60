"""Value types for the deadline reminder engine: candidates, dedupe keys, digest payloads, run counters."""

from datetime import date, datetime, timezone
from enum import Enum
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ReminderSource(str, Enum):
    TRACKED = "tracked"
    BOOKMARK = "bookmark"

    @property
    def notification_label(self) -> str:
        """Source value stored on in-app notifications."""
        return f"reminder:{self.value}"

    @property
    def digest_category(self) -> str:
        return "Tracked application" if self is ReminderSource.TRACKED else "Bookmarked listing"


class ReminderChannel(str, Enum):
    IN_APP = "in_app"
    EMAIL = "email"


def as_utc(value: object) -> datetime | None:
    """
    Normalize a stored timestamp to an aware UTC datetime.
    None, empty and malformed values -> None; naive datetimes are taken as UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class AnnouncementSummary(BaseModel):
    """Read projection of a catalog announcement."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    slug: str
    type: str
    organization: str | None = None
    deadline: datetime | None = None

    @field_validator("deadline", mode="before")
    @classmethod
    def _deadline_utc(cls, v: object) -> datetime | None:
        return as_utc(v)


class ReminderCandidate(BaseModel):
    """One (user, announcement, source) reminder built for a single cycle."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    source: ReminderSource
    announcement_id: str
    title: str
    type: str
    slug: str
    organization: str | None = None
    deadline: datetime | None = None

    @field_validator("deadline", mode="before")
    @classmethod
    def _deadline_utc(cls, v: object) -> datetime | None:
        return as_utc(v)

    @property
    def deadline_date(self) -> date | None:
        return self.deadline.date() if self.deadline is not None else None

    @property
    def merge_key(self) -> tuple[str, str, ReminderSource]:
        return (self.user_id, self.announcement_id, self.source)


class DedupeKey(BaseModel):
    """
    Logical identity of one dispatch: (channel, source, user, announcement, deadline day).

    Rendered as ``channel:source:user_id:announcement_id:YYYY-MM-DD`` (``none`` when the
    deadline is absent). Components are percent-escaped so an id containing ``:`` can
    never produce the same string as a different tuple.
    """

    model_config = ConfigDict(frozen=True)

    channel: ReminderChannel
    source: ReminderSource
    user_id: str = Field(..., min_length=1)
    announcement_id: str = Field(..., min_length=1)
    deadline_date: date | None = None

    @field_validator("user_id", "announcement_id")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @classmethod
    def for_candidate(cls, candidate: ReminderCandidate, channel: ReminderChannel) -> "DedupeKey":
        return cls(
            channel=channel,
            source=candidate.source,
            user_id=candidate.user_id,
            announcement_id=candidate.announcement_id,
            deadline_date=candidate.deadline_date,
        )

    @property
    def deadline_label(self) -> str | None:
        return self.deadline_date.isoformat() if self.deadline_date is not None else None

    def __str__(self) -> str:
        parts = (
            self.channel.value,
            self.source.value,
            self.user_id,
            self.announcement_id,
            self.deadline_label or "none",
        )
        return ":".join(quote(part, safe="") for part in parts)


class DigestAnnouncement(BaseModel):
    """One listing inside a digest email."""

    title: str
    slug: str
    type: str
    category: str
    organization: str
    deadline: datetime | None = None


class DigestEmail(BaseModel):
    """Payload handed to the mail transport."""

    email: str
    announcements: list[DigestAnnouncement]
    unsubscribe_token: str
    frequency: str = "daily"
    window_label: str


class ReminderRunResult(BaseModel):
    """Counters for one reminder pass."""

    candidates: int = 0
    in_app_sent: int = 0
    email_sent: int = 0
    email_skipped_no_subscription: int = 0
    deduped: int = 0
    # Partial failures; each item stays isolated from the rest of the cycle
    reservation_failed: int = 0
    in_app_failed: int = 0
    email_failed: int = 0
