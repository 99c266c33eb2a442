from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

UTC = timezone.utc


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("now_utc must be timezone-aware")
    return value.astimezone(UTC)


def month_window(now_utc: datetime, *, tz_name: str = "UTC") -> tuple[datetime, datetime]:
    """Return the calendar month containing ``now_utc`` as ``[start, end)`` in UTC.

    Month boundaries are taken in ``tz_name`` so that an account operating in a
    local timezone sees its allowance reset at local midnight on the 1st.
    """
    zone = ZoneInfo(tz_name)
    local_now = _as_utc(now_utc).astimezone(zone)
    start_local = datetime(local_now.year, local_now.month, 1, tzinfo=zone)
    if local_now.month == 12:
        end_local = datetime(local_now.year + 1, 1, 1, tzinfo=zone)
    else:
        end_local = datetime(local_now.year, local_now.month + 1, 1, tzinfo=zone)
    return start_local.astimezone(UTC), end_local.astimezone(UTC)
