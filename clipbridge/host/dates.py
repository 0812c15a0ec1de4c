"""Date strings used to recognise and name journal entries."""

import re
from dataclasses import dataclass
from datetime import date, datetime

TRAILING_DATE = re.compile(r"(\d{8})$")


@dataclass(frozen=True)
class DateKeys:
    compact: str     # 20261018
    month_day: str   # October 18
    full: str        # Sunday, October 18, 2026

    @classmethod
    def for_date(cls, day: date) -> "DateKeys":
        return cls(
            compact=day.strftime("%Y%m%d"),
            month_day=f"{day:%B} {day.day}",
            full=f"{day:%A}, {day:%B} {day.day}, {day.year}",
        )


def trailing_date(guid: str) -> str:
    """The 8-digit date a guid ends with, or ''."""
    match = TRAILING_DATE.search(guid or "")
    return match.group(1) if match else ""


def format_timestamp(moment: datetime) -> str:
    """e.g. 'Oct 18, 2026, 3:04 PM'."""
    hour = moment.hour % 12 or 12
    return f"{moment:%b} {moment.day}, {moment.year}, {hour}:{moment:%M} {moment:%p}"
