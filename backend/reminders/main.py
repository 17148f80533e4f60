import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI

# Ensure app loggers print to stdout so reminder cycles show up in the terminal
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
from reminders.config import settings
from reminders.db.session import dispose_db, init_db
from reminders.services.http_client import close_http_client, init_http_client
from reminders.services.scheduler import ReminderScheduler
from reminders.services.tracker_reminders import run_tracker_reminders_once
from prometheus_client import make_asgi_app

logger = logging.getLogger(__name__)

reminder_scheduler = ReminderScheduler(
    run_tracker_reminders_once,
    settings.tracker_reminder_interval_seconds,
)


def start_scheduler() -> None:
    reminder_scheduler.start()


def stop_scheduler() -> None:
    reminder_scheduler.stop()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.app_env == "production" and not settings.mail_configured:
        logger.warning("MAIL_API_URL is not set; reminder digests will be skipped")
    await init_db()
    init_http_client(settings)
    if settings.tracker_reminders_enabled:
        start_scheduler()
    yield
    stop_scheduler()
    await close_http_client()
    await dispose_db()


app = FastAPI(
    title="Sarkari Reminders",
    description="Deadline reminder dispatch for tracked applications and bookmarks",
    version="0.1.0",
    lifespan=lifespan,
)

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
def health():
    return {
        "status": "ok",
        "reminders": {
            "scheduled": reminder_scheduler.is_scheduled,
            "running": reminder_scheduler.is_running,
        },
    }
