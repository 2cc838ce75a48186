"""Infrastructure persistence layer."""

from .database import Database
from .models import (
    Base,
    JobStatusModel,
    QueuedJobModel,
    TriggerRunModel,
    ensure_utc_aware,
    utc_now,
)
from .repositories import (
    JobStatusRepository,
    QueuedJobRepository,
    TriggerRunRepository,
)
from .retry import is_lock_error, with_db_retry

__all__ = [
    "Base",
    "Database",
    "JobStatusModel",
    "JobStatusRepository",
    "QueuedJobModel",
    "QueuedJobRepository",
    "TriggerRunModel",
    "TriggerRunRepository",
    "ensure_utc_aware",
    "is_lock_error",
    "utc_now",
    "with_db_retry",
]
