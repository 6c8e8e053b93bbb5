# -*- coding: utf-8 -*-
"""Calendar-day helpers shared by queries and calendar views."""
from __future__ import annotations

from datetime import date, datetime, tzinfo
from typing import List, Optional, Union
import calendar

SUNDAY = calendar.SUNDAY


def day_of(value: Union[date, datetime], tz: Optional[tzinfo] = None) -> date:
    """Calendar day of *value* in *tz* (system local zone when None).

    Plain dates pass through unchanged.
    """
    if isinstance(value, datetime):
        return value.astimezone(tz).date()
    return value


def month_label(value: Union[date, datetime]) -> str:
    """Group heading such as 'March 2024'."""
    return value.strftime("%B %Y")


def month_grid(year: int, month: int, firstweekday: int = SUNDAY) -> List[List[Optional[date]]]:
    """Weeks of seven cells for *month*; days outside the month are None."""
    cal = calendar.Calendar(firstweekday)
    return [
        [d if d.month == month else None for d in week]
        for week in cal.monthdatescalendar(year, month)
    ]
