"""Append-only ledger of reminder dispatches; the unique dedupe_key enforces at-most-once per channel per deadline-day."""

from __future__ import annotations

from datetime import datetime
from sqlalchemy import BigInteger, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from reminders.db.base import Base


class ReminderDispatchLog(Base):
    __tablename__ = "reminder_dispatch_logs"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    dedupe_key: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    channel: Mapped[str] = mapped_column(String(16), nullable=False)  # in_app | email
    source: Mapped[str] = mapped_column(String(16), nullable=False)  # tracked | bookmark
    announcement_id: Mapped[str] = mapped_column(String(128), nullable=False)
    deadline_date: Mapped[str | None] = mapped_column(String(10), nullable=True)  # YYYY-MM-DD (UTC)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
