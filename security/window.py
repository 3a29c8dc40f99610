import math
from datetime import datetime, timedelta


def window_start(now: datetime, window: timedelta) -> datetime:
    return now - window


def is_within_window(ts: datetime, now: datetime, window: timedelta) -> bool:
    """
    True when ts counts toward a sliding window ending at now.
    The lower bound is exclusive: an event exactly `window` old has rolled out.
    """
    return ts > window_start(now, window)


def seconds_until_rollout(oldest: datetime, now: datetime, window: timedelta) -> int:
    """Seconds until `oldest` leaves the window (at least 1)."""
    return max(math.ceil((oldest + window - now).total_seconds()), 1)
