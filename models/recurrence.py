"""
Recurrence expansion.
Turns a base booking window plus simple recurrence settings into concrete occurrences.

Settings dict (see parse_recurrence):
    type:          'none' | 'daily' | 'weekly' | 'monthly' | 'yearly'
    interval:      step in units of type (>= 1)
    week_days:     weekly only, 0 = Sunday .. 6 = Saturday
    end_date:      'YYYY-MM-DD', inclusive through 23:59:59
    has_end_date:  when False the series runs one year from the base start
"""

import calendar
from datetime import date, datetime, timedelta

from utils.errors import ReservationInputError
from utils.messages import get_message

RECURRENCE_TYPES = ('none', 'daily', 'weekly', 'monthly', 'yearly')
MAX_OCCURRENCES = 365

WEEKDAY_NAMES = ('Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat')
UNIT_NAMES = {'daily': 'day', 'weekly': 'week', 'monthly': 'month', 'yearly': 'year'}


def _invalid(detail: str, field: str = 'recurrence') -> ReservationInputError:
    return ReservationInputError(
        get_message('invalid_recurrence', detail=detail),
        code='invalid_recurrence',
        field=field
    )


def parse_recurrence(data) -> dict:
    """
    Parse recurrence settings from a JSON payload.

    Accepts both snake_case and the camelCase keys sent by the calendar UI
    (weekDays, endDate, hasEndDate).

    Args:
        data: dict or None

    Returns:
        Normalized settings dict

    Raises:
        ReservationInputError: If a field is malformed
    """
    if not data:
        return {'type': 'none', 'interval': 1, 'week_days': [], 'end_date': None, 'has_end_date': False}

    recurrence_type = data.get('type') or 'none'
    if recurrence_type not in RECURRENCE_TYPES:
        raise _invalid(f'unknown type {recurrence_type!r}', field='type')

    interval = data.get('interval', 1)
    if isinstance(interval, bool):
        raise _invalid('interval must be a whole number', field='interval')
    try:
        interval = int(interval)
    except (TypeError, ValueError):
        raise _invalid('interval must be a whole number', field='interval')
    if interval < 1:
        raise _invalid('interval must be at least 1', field='interval')

    week_days = data.get('week_days', data.get('weekDays')) or []
    try:
        week_days = sorted({int(day) for day in week_days})
    except (TypeError, ValueError):
        raise _invalid('week_days must be numbers 0-6', field='week_days')
    if any(day < 0 or day > 6 for day in week_days):
        raise _invalid('week_days must be numbers 0-6', field='week_days')

    end_date = data.get('end_date', data.get('endDate')) or None
    has_end_date = data.get('has_end_date', data.get('hasEndDate'))
    if has_end_date is None:
        has_end_date = end_date is not None
    has_end_date = bool(has_end_date)

    if end_date is not None:
        try:
            end_date = datetime.strptime(str(end_date)[:10], '%Y-%m-%d').date()
        except ValueError:
            raise _invalid(f'bad end date {end_date!r}', field='end_date')

    return {
        'type': recurrence_type,
        'interval': interval,
        'week_days': week_days,
        'end_date': end_date,
        'has_end_date': has_end_date
    }


def add_months(value: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the target month's last day."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _end_limit(base_start: datetime, settings: dict) -> datetime:
    if settings.get('has_end_date') and settings.get('end_date'):
        end_date = settings['end_date']
        if isinstance(end_date, str):
            end_date = datetime.strptime(end_date[:10], '%Y-%m-%d').date()
        return datetime.combine(end_date, datetime.min.time()).replace(hour=23, minute=59, second=59)
    return add_months(base_start, 12)


def _js_weekday(value: datetime) -> int:
    """0 = Sunday .. 6 = Saturday."""
    return (value.weekday() + 1) % 7


def expand_recurrence(base_start: datetime, base_end: datetime, settings: dict,
                      max_occurrences: int = MAX_OCCURRENCES) -> list:
    """
    Expand a base window into occurrences.

    Every occurrence keeps the base duration. The series stops at the end
    limit (inclusive) or after max_occurrences, whichever comes first.

    Weekly series walk day by day from the base start and emit on the
    selected weekdays; each time a multiple of 7 days has elapsed since the
    base start, 7 * (interval - 1) days are skipped. Month and year steps
    are taken from the base start (k * interval) so a 31st does not drift
    after a short month.

    Args:
        base_start: First occurrence start (naive datetime)
        base_end: First occurrence end
        settings: Dict from parse_recurrence
        max_occurrences: Hard cap

    Returns:
        List of (start, end) tuples in chronological order
    """
    recurrence_type = (settings or {}).get('type', 'none')
    if recurrence_type == 'none':
        return [(base_start, base_end)]

    duration = base_end - base_start
    interval = settings.get('interval') or 1
    end_limit = _end_limit(base_start, settings)
    occurrences = []

    if recurrence_type == 'weekly':
        week_days = set(settings.get('week_days') or [])
        current = base_start
        while len(occurrences) < max_occurrences and current <= end_limit:
            if _js_weekday(current) in week_days:
                occurrences.append((current, current + duration))
            current += timedelta(days=1)

            days_from_start = (current.date() - base_start.date()).days
            if days_from_start > 0 and days_from_start % 7 == 0 and interval > 1:
                current += timedelta(days=7 * (interval - 1))
        return occurrences

    step = 0
    current = base_start
    while len(occurrences) < max_occurrences and current <= end_limit:
        occurrences.append((current, current + duration))
        step += 1
        if recurrence_type == 'daily':
            current = base_start + timedelta(days=step * interval)
        elif recurrence_type == 'monthly':
            current = add_months(base_start, step * interval)
        else:
            current = add_months(base_start, 12 * step * interval)

    return occurrences


def describe_recurrence(settings: dict) -> str:
    """
    Human-readable summary, e.g. 'Every 2 weeks on Mon, Wed (until 2024-03-01)'.
    """
    recurrence_type = (settings or {}).get('type', 'none')
    if recurrence_type == 'none':
        return 'Does not repeat'

    interval = settings.get('interval') or 1
    unit = UNIT_NAMES[recurrence_type]
    label = f'Every {unit}' if interval == 1 else f'Every {interval} {unit}s'

    if recurrence_type == 'weekly' and settings.get('week_days'):
        label += ' on ' + ', '.join(WEEKDAY_NAMES[day] for day in settings['week_days'])

    end_date = settings.get('end_date')
    if settings.get('has_end_date') and end_date:
        if isinstance(end_date, date):
            end_date = end_date.isoformat()
        label += f' (until {end_date})'

    return label
