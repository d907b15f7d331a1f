import calendar
from datetime import date


def add_months(d: date, months: int) -> date:
    year = d.year + (d.month - 1 + months) // 12
    month = (d.month - 1 + months) % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def clamp_day(year: int, month: int, day: int) -> date:
    """Return ``date(year, month, day)``, clamping ``day`` to the month's last day."""
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last))
