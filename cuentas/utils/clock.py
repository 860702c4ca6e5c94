"""
Local calendar clock.

Statuses compare calendar dates only, so "today" must be the date in the
configured timezone rather than the server's UTC date.
"""
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from cuentas.config import get_settings


def local_today() -> date:
    return datetime.now(tz=ZoneInfo(get_settings().TIMEZONE)).date()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
