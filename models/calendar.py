"""
Calendar aggregation.
Day/week/month windows, per-day buckets, grouped day details and slot availability.

Pure functions over reservation dicts; nothing here touches the database
or changes the reservations it is given.
"""

from datetime import date, datetime, timedelta

from utils.datetime_helpers import parse_datetime
from .availability import intervals_overlap, available_quantity
from .recurrence import add_months

CALENDAR_VIEWS = ('day', 'week', 'month')


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return parse_datetime(value)


def day_window(day) -> tuple:
    """[00:00, next day 00:00) for a date."""
    day = _as_date(day)
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)


def reservations_on_day(reservations: list, day) -> list:
    """
    Reservations overlapping a calendar day, ordered by start time.

    A reservation ending exactly at midnight does not appear on the next day.
    """
    day_start, day_end = day_window(day)
    matches = [
        reservation for reservation in reservations
        if intervals_overlap(
            _as_datetime(reservation['start_time']),
            _as_datetime(reservation['end_time']),
            day_start,
            day_end
        )
    ]
    return sorted(matches, key=lambda r: (_as_datetime(r['start_time']), r.get('id') or 0))


def week_days(anchor, week_starts_on: int = 0) -> list:
    """
    The 7 dates of the week containing anchor.

    Args:
        anchor: Any date in the week
        week_starts_on: 0 = Monday .. 6 = Sunday

    Returns:
        List of 7 dates
    """
    anchor = _as_date(anchor)
    start = anchor - timedelta(days=(anchor.weekday() - week_starts_on) % 7)
    return [start + timedelta(days=offset) for offset in range(7)]


def month_grid(anchor, week_starts_on: int = 0) -> list:
    """
    Full weeks covering the month of anchor, as a list of 7-date lists.
    Leading and trailing days from adjacent months are included.
    """
    anchor = _as_date(anchor)
    first = anchor.replace(day=1)
    last = add_months(datetime(first.year, first.month, 1), 1).date() - timedelta(days=1)

    weeks = []
    week = week_days(first, week_starts_on)
    while week[0] <= last:
        weeks.append(week)
        week = [day + timedelta(days=7) for day in week]
    return weeks


def bucket_by_day(reservations: list, days: list) -> dict:
    """
    Map each date (ISO string) to the reservations overlapping it.

    A multi-day reservation appears in every bucket it touches.
    """
    return {
        _as_date(day).isoformat(): reservations_on_day(reservations, day)
        for day in days
    }


def _group_key(reservation: dict) -> tuple:
    return (
        reservation.get('reserver_id'),
        reservation.get('project_id') or None,
        reservation['start_time'],
        reservation['end_time'],
        reservation.get('title'),
        reservation['resource_type'],
    )


def group_day_reservations(reservations: list, day=None) -> list:
    """
    Merge reservations made together (same reserver, project, window,
    title and resource type) into display groups.

    Typical case: one equipment rental batch shows as a single entry
    listing every item.

    Args:
        reservations: Reservation dicts
        day: Only group reservations overlapping this date (optional)

    Returns:
        List of groups ordered by start time: {
            'reserver_id', 'reserver_name', 'project_id', 'title',
            'resource_type', 'start_time', 'end_time',
            'items': [{'reservation_id', 'resource_id', 'quantity'}],
            'total_quantity', 'reservation_ids'
        }
    """
    if day is not None:
        reservations = reservations_on_day(reservations, day)

    groups = {}
    for reservation in reservations:
        key = _group_key(reservation)
        group = groups.get(key)
        if group is None:
            group = {
                'reserver_id': reservation.get('reserver_id'),
                'reserver_name': reservation.get('reserver_name'),
                'project_id': reservation.get('project_id'),
                'title': reservation.get('title'),
                'resource_type': reservation['resource_type'],
                'start_time': reservation['start_time'],
                'end_time': reservation['end_time'],
                'items': [],
                'total_quantity': 0,
                'reservation_ids': [],
            }
            groups[key] = group

        quantity = reservation.get('quantity') or 1
        group['items'].append({
            'reservation_id': reservation.get('id'),
            'resource_id': reservation['resource_id'],
            'quantity': quantity,
        })
        group['total_quantity'] += quantity
        group['reservation_ids'].append(reservation.get('id'))

    return sorted(groups.values(), key=lambda g: _as_datetime(g['start_time']))


def availability_slots(resource: dict, day, reservations: list, slot_minutes: int = 60,
                       day_start_hour: int = 0, day_end_hour: int = 24) -> list:
    """
    Available quantity of a resource for each slot of a day.

    Returns:
        List of {'start_time', 'end_time', 'available_quantity'}
    """
    day_start, _ = day_window(day)
    current = day_start + timedelta(hours=day_start_hour)
    limit = day_start + timedelta(hours=day_end_hour)
    step = timedelta(minutes=slot_minutes)

    slots = []
    while current < limit:
        slot_end = min(current + step, limit)
        slots.append({
            'start_time': current.isoformat(),
            'end_time': slot_end.isoformat(),
            'available_quantity': available_quantity(resource, current, slot_end, reservations),
        })
        current = slot_end
    return slots


def view_range(view: str, anchor, week_starts_on: int = 0) -> list:
    """
    Dates shown by a calendar view.

    Args:
        view: 'day', 'week' or 'month'
        anchor: Date the view is centred on

    Returns:
        List of dates

    Raises:
        ValueError: Unknown view
    """
    if view == 'day':
        return [_as_date(anchor)]
    if view == 'week':
        return week_days(anchor, week_starts_on)
    if view == 'month':
        return [day for week in month_grid(anchor, week_starts_on) for day in week]
    raise ValueError(f'Unknown calendar view: {view}')
