"""Timezone-aware date/time helpers for the booking application."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

STORAGE_FORMAT = '%Y-%m-%dT%H:%M:%S'


def get_timezone() -> ZoneInfo:
    """Get the configured timezone."""
    tz_name = current_app.config.get('TIMEZONE', 'Asia/Seoul')
    return ZoneInfo(tz_name)


def get_today() -> date:
    """Get today's date in the configured timezone."""
    return datetime.now(get_timezone()).date()


def get_now() -> datetime:
    """Get current naive datetime in the configured timezone."""
    return datetime.now(get_timezone()).replace(tzinfo=None, microsecond=0)


def parse_datetime(value, tz: ZoneInfo = None) -> datetime:
    """
    Parse an ISO-8601 value into a naive datetime in the booking timezone.

    Offset-aware input (e.g. '2024-01-01T00:00:00Z') is converted to ``tz``
    (or the configured timezone inside an app context) before the offset
    is dropped. Naive input is taken as already local.

    Args:
        value: datetime, date or ISO string
        tz: Target timezone (optional)

    Returns:
        Naive datetime with second precision

    Raises:
        ValueError: If the value cannot be parsed
    """
    if value is None or value == '':
        raise ValueError('empty datetime')

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f'unsupported datetime value: {value!r}')

    if parsed.tzinfo is not None:
        if tz is None and has_app_context():
            tz = get_timezone()
        if tz is not None:
            parsed = parsed.astimezone(tz)
        parsed = parsed.replace(tzinfo=None)

    return parsed.replace(microsecond=0)


def parse_date(value) -> date:
    """
    Parse a YYYY-MM-DD string (or datetime/date) into a date.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValueError('empty date')
    text = str(value).strip()
    if 'T' in text or ' ' in text:
        return parse_datetime(text).date()
    return datetime.strptime(text, '%Y-%m-%d').date()


def format_datetime(value: datetime) -> str:
    """Format a datetime in the storage format (YYYY-MM-DDTHH:MM:SS)."""
    return value.strftime(STORAGE_FORMAT)
