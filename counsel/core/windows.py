from datetime import datetime, timedelta
from counsel.core.base import as_utc
from counsel.core.errors import TooEarlyError, WindowClosedError

def window_bounds(start: datetime, end: datetime, lead_minutes: int) -> tuple[datetime, datetime]:
    return as_utc(start) - timedelta(minutes=lead_minutes), as_utc(end)

def in_window(start: datetime, end: datetime, now: datetime, lead_minutes: int) -> bool:
    opens, closes = window_bounds(start, end, lead_minutes)
    return opens <= as_utc(now) <= closes

def check_window(start: datetime, end: datetime, now: datetime, lead_minutes: int, action: str) -> None:
    """Raise unless `now` falls in [start - lead_minutes, end], both ends inclusive."""
    opens, closes = window_bounds(start, end, lead_minutes)
    now = as_utc(now)
    if now < opens:
        raise TooEarlyError(f"Too early to {action}; opens at {opens.isoformat()}")
    if now > closes:
        raise WindowClosedError(f"Too late to {action}; closed at {closes.isoformat()}")
