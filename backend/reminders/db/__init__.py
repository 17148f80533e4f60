from reminders.db.session import async_session_maker, dispose_db, init_db
from reminders.db.base import Base

__all__ = ["Base", "async_session_maker", "dispose_db", "init_db"]
