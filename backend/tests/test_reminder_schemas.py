"""Tests for reminder value types: timestamp normalization and dedupe keys."""

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from reminders.schemas.reminders import (
    DedupeKey,
    ReminderCandidate,
    ReminderChannel,
    ReminderSource,
    as_utc,
)


def _candidate(**overrides) -> ReminderCandidate:
    data = {
        "user_id": "u1",
        "source": ReminderSource.TRACKED,
        "announcement_id": "ann-1",
        "title": "UPSC Job",
        "type": "job",
        "slug": "upsc-job",
        "organization": "UPSC",
        "deadline": datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return ReminderCandidate(**data)


@pytest.mark.parametrize("raw,expected", [
    (None, None),
    ("", None),
    ("   ", None),
    ("not a date", None),
    (12345, None),
    (datetime(2024, 6, 3, 12, 0), datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)),
    ("2024-06-03T12:00:00Z", datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)),
    ("2024-06-03T17:30:00+05:30", datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)),
    (date(2024, 6, 3), datetime(2024, 6, 3, tzinfo=timezone.utc)),
])
def test_as_utc(raw, expected):
    """Naive values are taken as UTC, aware values converted, malformed values dropped."""
    assert as_utc(raw) == expected


def test_candidate_deadline_date_uses_utc_calendar_day():
    ist = timezone(timedelta(hours=5, minutes=30))
    c = _candidate(deadline=datetime(2024, 6, 4, 2, 0, tzinfo=ist))
    assert c.deadline_date == date(2024, 6, 3)


def test_candidate_malformed_deadline_is_absent():
    c = _candidate(deadline="31/06/2024")
    assert c.deadline is None
    assert c.deadline_date is None


def test_dedupe_key_format():
    c = _candidate()
    assert str(DedupeKey.for_candidate(c, ReminderChannel.IN_APP)) == "in_app:tracked:u1:ann-1:2024-06-03"
    assert str(DedupeKey.for_candidate(c, ReminderChannel.EMAIL)) == "email:tracked:u1:ann-1:2024-06-03"


def test_dedupe_key_without_deadline_uses_none():
    c = _candidate(deadline=None, source=ReminderSource.BOOKMARK)
    assert str(DedupeKey.for_candidate(c, ReminderChannel.EMAIL)) == "email:bookmark:u1:ann-1:none"


def test_dedupe_key_same_day_different_instants_collide():
    """Deduplication is per deadline day, not per instant."""
    morning = _candidate(deadline=datetime(2024, 6, 3, 1, 0, tzinfo=timezone.utc))
    evening = _candidate(deadline=datetime(2024, 6, 3, 23, 0, tzinfo=timezone.utc))
    assert str(DedupeKey.for_candidate(morning, ReminderChannel.EMAIL)) == str(
        DedupeKey.for_candidate(evening, ReminderChannel.EMAIL)
    )


def test_dedupe_key_escapes_delimiters():
    c = _candidate(announcement_id="tracked:abc123", deadline=None)
    assert str(DedupeKey.for_candidate(c, ReminderChannel.IN_APP)) == "in_app:tracked:u1:tracked%3Aabc123:none"


def test_dedupe_key_no_collision_across_component_boundaries():
    a = DedupeKey(channel=ReminderChannel.EMAIL, source=ReminderSource.TRACKED, user_id="a:b", announcement_id="c")
    b = DedupeKey(channel=ReminderChannel.EMAIL, source=ReminderSource.TRACKED, user_id="a", announcement_id="b:c")
    assert str(a) != str(b)


@pytest.mark.parametrize("field", ["user_id", "announcement_id"])
def test_dedupe_key_rejects_blank_components(field):
    data = {
        "channel": ReminderChannel.EMAIL,
        "source": ReminderSource.TRACKED,
        "user_id": "u1",
        "announcement_id": "ann-1",
    }
    data[field] = "  "
    with pytest.raises(ValidationError):
        DedupeKey(**data)


def test_source_labels():
    assert ReminderSource.TRACKED.notification_label == "reminder:tracked"
    assert ReminderSource.BOOKMARK.notification_label == "reminder:bookmark"
    assert ReminderSource.TRACKED.digest_category == "Tracked application"
    assert ReminderSource.BOOKMARK.digest_category == "Bookmarked listing"
