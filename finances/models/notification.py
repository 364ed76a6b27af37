"""
Notification Model

Notifications are the in-app feed. Most are produced by the rule
evaluator after a mutation; the user can read or dismiss them.
"""

import datetime as dt
from enum import Enum

from pydantic import Field

from finances.models.finance import Document, utc_now


class NotificationType(str, Enum):
    """Severity shown next to a notification."""
    INFO = "info"
    WARNING = "warning"
    SUCCESS = "success"
    ERROR = "error"


class Notification(Document):
    """A single entry in the notification feed."""

    # Alert titles prefix an entity name of up to 200 characters
    title: str = Field(..., min_length=1, max_length=300)
    message: str = Field(..., max_length=1000)
    type: NotificationType = NotificationType.INFO
    timestamp: dt.datetime = Field(
        default_factory=utc_now,
        description="When the notification was created (UTC)"
    )
    is_read: bool = False
