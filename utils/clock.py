from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Naive UTC now; every DateTime column in the schema is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _zone(tz_name: str):
    if not tz_name or tz_name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(tz_name)


def business_today(now_utc: datetime, tz_name: str) -> date:
    """Calendar date at the business location for a naive-UTC instant."""
    return now_utc.replace(tzinfo=timezone.utc).astimezone(_zone(tz_name)).date()


def local_to_utc(local_dt: datetime, tz_name: str) -> datetime:
    """Wall-clock time at the business location -> naive UTC."""
    aware = local_dt.replace(tzinfo=_zone(tz_name))
    return aware.astimezone(timezone.utc).replace(tzinfo=None)
