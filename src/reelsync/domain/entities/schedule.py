"""Scheduling value objects: cadences and trigger run summaries."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum


class Cadence(str, Enum):
    """Recurring interval a trigger fires on."""

    EVERY_15_MINUTES = "every_15_minutes"
    EVERY_30_MINUTES = "every_30_minutes"
    HOURLY = "hourly"
    TWICE_DAILY = "twice_daily"
    DAILY = "daily"
    WEEKLY = "weekly"

    @property
    def interval(self) -> timedelta:
        return _CADENCE_INTERVALS[self]


_CADENCE_INTERVALS: dict[Cadence, timedelta] = {
    Cadence.EVERY_15_MINUTES: timedelta(minutes=15),
    Cadence.EVERY_30_MINUTES: timedelta(minutes=30),
    Cadence.HOURLY: timedelta(hours=1),
    Cadence.TWICE_DAILY: timedelta(hours=12),
    Cadence.DAILY: timedelta(days=1),
    Cadence.WEEKLY: timedelta(weeks=1),
}


@dataclass
class TriggerRunSummary:
    """What one trigger fire found and enqueued."""

    trigger_name: str
    started_at: datetime
    finished_at: datetime | None = None
    found: int = 0
    enqueued: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "trigger_name": self.trigger_name,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "found": self.found,
            "enqueued": self.enqueued,
            "error": self.error,
        }
