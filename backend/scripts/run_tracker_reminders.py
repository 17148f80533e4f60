#!/usr/bin/env python3
"""One-off: run a single deadline reminder pass and print its counters.
Usage: DATABASE_URL=... MAIL_API_URL=... python scripts/run_tracker_reminders.py [--now 2026-02-13T09:00:00Z]"""
import argparse
import asyncio
import json

from reminders.db.session import dispose_db
from reminders.schemas.reminders import as_utc
from reminders.services.http_client import close_http_client, init_http_client
from reminders.services.tracker_reminders import run_tracker_reminders_once
from reminders.config import settings


async def main(now_raw: str | None) -> None:
    now = as_utc(now_raw) if now_raw else None
    if now_raw and now is None:
        raise SystemExit(f"Invalid --now value: {now_raw!r}")
    init_http_client(settings)
    try:
        result = await run_tracker_reminders_once(now)
    finally:
        await close_http_client()
        await dispose_db()
    print(json.dumps(result.model_dump(), indent=2))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--now", help="Reference instant (ISO 8601); defaults to current time")
    args = parser.parse_args()
    asyncio.run(main(args.now))
