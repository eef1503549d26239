"""
Business Hours Service

Answers "is the restaurant open right now?" from the weekly schedule stored
under the ``businessHours`` settings key. A missing or malformed schedule
falls back to 18:30-22:30 every day.

Ranges are inclusive on both ends. A closing time earlier than the opening
time (e.g. 18:00-02:00) is an overnight range.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from app.schemas import DayHours, WeeklyHours
from app.services.settings_defaults import BUSINESS_HOURS_KEY
from app.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)

# datetime.weekday() order
DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


@dataclass
class BusinessHoursStatus:
    is_open: bool
    message: str
    next_open_time: Optional[str] = None
    today_hours: Optional[DayHours] = None


def time_to_minutes(value: str) -> int:
    """'HH:MM' -> minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def is_time_within_range(current: str, open_time: str, close_time: str) -> bool:
    now = time_to_minutes(current)
    start = time_to_minutes(open_time)
    end = time_to_minutes(close_time)

    if end < start:
        return now >= start or now <= end
    return start <= now <= end


class BusinessHoursService:
    """
    Opening-hours checks backed by the settings store.

    Example:
        >>> service = BusinessHoursService(store, timezone="Europe/Rome")
        >>> status = await service.check()
        >>> status.is_open
        True
    """

    def __init__(self, store: SettingsStore, timezone: str = "Europe/Rome"):
        self._store = store
        self._tz = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self._tz)

    async def get_hours(self) -> WeeklyHours:
        raw = await self._store.get(BUSINESS_HOURS_KEY)
        if raw is None:
            return WeeklyHours()
        try:
            return WeeklyHours.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Invalid business hours in database, using defaults: {e}")
            return WeeklyHours()

    async def update_hours(self, hours: WeeklyHours) -> bool:
        return await self._store.set(BUSINESS_HOURS_KEY, hours)

    async def today_hours(self, at: Optional[datetime] = None) -> DayHours:
        at = self._localize(at)
        hours = await self.get_hours()
        return getattr(hours, DAY_NAMES[at.weekday()])

    async def check(self, at: Optional[datetime] = None) -> BusinessHoursStatus:
        """
        Whether the restaurant is open at ``at`` (default: now).

        Naive datetimes are taken as restaurant-local time.
        """
        at = self._localize(at)
        hours = await self.get_hours()
        today = getattr(hours, DAY_NAMES[at.weekday()])

        if not today.is_open:
            return BusinessHoursStatus(
                is_open=False,
                message="We are closed today. You can order during our opening hours.",
                next_open_time=self._next_open_time(hours, at),
                today_hours=today,
            )

        if is_time_within_range(at.strftime("%H:%M"), today.open_time, today.close_time):
            return BusinessHoursStatus(
                is_open=True,
                message="We are open! You can place your order.",
                today_hours=today,
            )

        return BusinessHoursStatus(
            is_open=False,
            message=f"We are closed. Today's hours: {today.open_time}-{today.close_time}",
            next_open_time=self._next_open_time(hours, at),
            today_hours=today,
        )

    def _localize(self, at: Optional[datetime]) -> datetime:
        if at is None:
            return self.now()
        if at.tzinfo is None:
            return at.replace(tzinfo=self._tz)
        return at.astimezone(self._tz)

    @staticmethod
    def _next_open_time(hours: WeeklyHours, after: datetime) -> str:
        """First open day in the following week, e.g. 'Tuesday at 18:30'."""
        for offset in range(1, 8):
            day = after + timedelta(days=offset)
            name = DAY_NAMES[day.weekday()]
            day_hours = getattr(hours, name)
            if day_hours.is_open:
                return f"{name.capitalize()} at {day_hours.open_time}"
        return "Check our opening hours"
