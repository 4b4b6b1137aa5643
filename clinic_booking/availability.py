"""Candidate dates and time slots for booking and rescheduling.

The engine is pure: output depends only on its configuration and the clock.
It knows the business-hour grid, not the bookings made against it, so a slot
being "available" means it is part of the grid.
"""
import datetime as dt
from typing import Callable, Iterable, List, Optional, Union

from clinic_booking import config
from clinic_booking.logging_config import get_logger
from clinic_booking.models import DateSlot, TimeSlot

logger = get_logger(__name__)

WEEKEND = (5, 6)  # Saturday, Sunday


class AvailabilityEngine:
    """Generate the bookable date window and the daily time grid."""

    def __init__(
        self,
        open_hour: int = 9,
        close_hour: int = 17,
        slot_minutes: int = 30,
        lunch_hour: Optional[int] = 12,
        horizon_days: int = config.DATE_WINDOW_DAYS,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ):
        """
        Initialize the engine.

        Args:
            open_hour: First slot hour (inclusive)
            close_hour: Last slot hour (inclusive, :00 only)
            slot_minutes: Cadence of the grid
            lunch_hour: Hour whose slots are dropped; None keeps every hour
            horizon_days: Default number of calendar days in the date window
            clock: Returns "now"

        Raises:
            ValueError: If the grid configuration is inconsistent
        """
        if slot_minutes <= 0:
            raise ValueError("slot_minutes must be positive")
        if not (0 <= open_hour < close_hour <= 23):
            raise ValueError("Business hours must satisfy 0 <= open_hour < close_hour <= 23")
        if lunch_hour is not None and not (0 <= lunch_hour <= 23):
            raise ValueError("lunch_hour must be an hour of the day")
        if horizon_days <= 0:
            raise ValueError("horizon_days must be positive")

        self.open_hour = open_hour
        self.close_hour = close_hour
        self.slot_minutes = slot_minutes
        self.lunch_hour = lunch_hour
        self.horizon_days = horizon_days
        self.clock = clock

    @classmethod
    def from_config(cls, clock: Callable[[], dt.datetime] = dt.datetime.now) -> "AvailabilityEngine":
        """Engine using config.BUSINESS_HOURS and config.DATE_WINDOW_DAYS."""
        return cls(
            open_hour=config.BUSINESS_HOURS["open_hour"],
            close_hour=config.BUSINESS_HOURS["close_hour"],
            slot_minutes=config.BUSINESS_HOURS["slot_minutes"],
            lunch_hour=config.BUSINESS_HOURS.get("lunch_hour"),
            horizon_days=config.DATE_WINDOW_DAYS,
            clock=clock,
        )

    def generate_date_window(self, horizon_days: Optional[int] = None) -> List[DateSlot]:
        """
        Weekday dates from tomorrow through tomorrow + horizon_days - 1.

        Args:
            horizon_days: Calendar days to scan (defaults to the engine horizon)

        Returns:
            Ordered date slots, Saturdays and Sundays excluded

        Example:
            With "now" on Friday 2024-06-07 and horizon 7 the window scans
            Jun 8 - Jun 14 and returns Mon Jun 10 through Fri Jun 14.
        """
        horizon = self.horizon_days if horizon_days is None else horizon_days
        today = self.clock().date()

        dates = []
        for offset in range(1, horizon + 1):
            day = today + dt.timedelta(days=offset)
            if day.weekday() in WEEKEND:
                continue
            dates.append(DateSlot(
                date_key=day.isoformat(),
                label=f"{day:%a}, {day:%b} {day.day}",
                full_label=format_date_long(day),
                day_of_week=f"{day:%A}",
            ))

        return dates

    def generate_time_grid(self, date: Union[dt.date, str, None] = None) -> List[TimeSlot]:
        """
        Time slots for a day, open_hour:00 through close_hour:00 inclusive.

        The grid is the same for every date; the argument is accepted so
        callers can ask for "the slots of this date".

        Returns:
            Ordered time slots with 24h keys and 12h labels
        """
        slots = []
        minute_of_day = self.open_hour * 60
        last_minute = self.close_hour * 60

        while minute_of_day <= last_minute:
            hour, minute = divmod(minute_of_day, 60)
            minute_of_day += self.slot_minutes

            if self.lunch_hour is not None and hour == self.lunch_hour:
                continue

            time_key = f"{hour:02d}:{minute:02d}"
            slots.append(TimeSlot(time_key=time_key, label=format_time_12h(time_key)))

        return slots

    def is_in_grid(self, time_key: str) -> bool:
        """Whether time_key (HH:MM) is one of the grid's slots."""
        return any(slot.time_key == time_key for slot in self.generate_time_grid())

    def is_in_window(self, date_key: str) -> bool:
        """Whether date_key (YYYY-MM-DD) is in the current date window."""
        return any(slot.date_key == date_key for slot in self.generate_date_window())

    def is_slot_taken(self, candidate: TimeSlot, existing_appointments: Iterable) -> bool:
        """
        Whether candidate collides with an existing booking.

        Bookings are not cross-referenced: the engine only vouches for the
        grid, so this is always False and double-booking is possible.
        """
        logger.debug("slot_taken_not_checked", time_key=candidate.time_key)
        return False


def format_time_12h(time_24h: str) -> str:
    """Convert 24h time to 12h format."""
    hour, minute = map(int, time_24h.split(":"))
    period = "AM" if hour < 12 else "PM"
    hour_12 = hour if hour <= 12 else hour - 12
    hour_12 = 12 if hour_12 == 0 else hour_12
    return f"{hour_12}:{minute:02d} {period}"


def format_date_long(day: dt.date) -> str:
    """Monday, June 10, 2024"""
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"
