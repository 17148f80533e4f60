from reminders.models.user import User
from reminders.models.subscription import Subscription
from reminders.models.announcement import Announcement
from reminders.models.bookmark import Bookmark
from reminders.models.tracked_application import TrackedApplication
from reminders.models.reminder_dispatch_log import ReminderDispatchLog
from reminders.models.user_notification import UserNotification

__all__ = [
    "User",
    "Subscription",
    "Announcement",
    "Bookmark",
    "TrackedApplication",
    "ReminderDispatchLog",
    "UserNotification",
]
