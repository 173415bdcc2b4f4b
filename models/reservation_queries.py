"""
Reservation queries.
Listing, filtering, overlap lookups and status history.
"""

from datetime import datetime, timedelta

from database import get_db
from utils.datetime_helpers import parse_datetime, format_datetime

RESERVATION_SELECT = '''
    SELECT r.*, u.full_name as reserver_name, u.username as reserver_username
    FROM reservations r
    LEFT JOIN users u ON r.reserver_id = u.id
'''


def _date_bound(value, end_of_day: bool = False) -> str:
    """
    Convert a filter bound to the storage format.

    A bare date (YYYY-MM-DD) means the start of that day, or for an upper
    bound the start of the following day so the whole day is included.
    """
    if isinstance(value, datetime):
        return format_datetime(parse_datetime(value))
    text = str(value).strip()
    if len(text) == 10:
        day = datetime.strptime(text, '%Y-%m-%d')
        if end_of_day:
            day += timedelta(days=1)
        return format_datetime(day)
    return format_datetime(parse_datetime(text))


def get_reservations(
    resource_type: str = None,
    resource_id: int = None,
    start_date=None,
    end_date=None,
    status: str = 'active',
    reserver_id: int = None,
    overlapping: bool = False
) -> list:
    """
    List reservations with optional filters.

    By default only reservations lying entirely inside [start_date, end_date]
    are returned (start_time >= start_date and end_time <= end_date). With
    overlapping=True every reservation that intersects the window is
    returned instead (start_time < end_date and end_time > start_date), which
    is what calendar views need for bookings crossing the window edges.

    Args:
        resource_type: Filter by resource type
        resource_id: Filter by resource ID (with resource_type)
        start_date: Window start (date or date-time)
        end_date: Window end (date or date-time)
        status: 'active' (default), 'cancelled' or None for any
        reserver_id: Filter by reserver
        overlapping: Match by overlap instead of containment

    Returns:
        List of reservation dicts ordered by start_time

    Raises:
        ValueError: If a date bound cannot be parsed
    """
    db = get_db()
    cursor = db.cursor()

    query = RESERVATION_SELECT + ' WHERE 1=1'
    params = []

    if resource_type:
        query += ' AND r.resource_type = ?'
        params.append(resource_type)

    if resource_id is not None:
        query += ' AND r.resource_id = ?'
        params.append(resource_id)

    if start_date:
        query += ' AND r.end_time > ?' if overlapping else ' AND r.start_time >= ?'
        params.append(_date_bound(start_date))

    if end_date:
        query += ' AND r.start_time < ?' if overlapping else ' AND r.end_time <= ?'
        params.append(_date_bound(end_date, end_of_day=True))

    if status:
        query += ' AND r.status = ?'
        params.append(status)

    if reserver_id is not None:
        query += ' AND r.reserver_id = ?'
        params.append(reserver_id)

    query += ' ORDER BY r.start_time, r.id'

    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]


def get_overlapping_reservations(
    resource_type: str,
    resource_id: int,
    start,
    end,
    exclude_reservation_id: int = None
) -> list:
    """
    Get active reservations on a resource whose interval overlaps [start, end).

    Args:
        resource_type: Resource type
        resource_id: Resource ID
        start: Window start (datetime or ISO string)
        end: Window end (datetime or ISO string)
        exclude_reservation_id: Reservation to leave out (for edits)

    Returns:
        List of reservation dicts
    """
    db = get_db()
    cursor = db.cursor()

    query = RESERVATION_SELECT + '''
        WHERE r.resource_type = ? AND r.resource_id = ?
          AND r.status = 'active'
          AND r.start_time < ? AND r.end_time > ?
    '''
    params = [
        resource_type, resource_id,
        format_datetime(parse_datetime(end)),
        format_datetime(parse_datetime(start))
    ]

    if exclude_reservation_id:
        query += ' AND r.id != ?'
        params.append(exclude_reservation_id)

    query += ' ORDER BY r.start_time'

    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]


def get_reservation_by_id(reservation_id: int) -> dict:
    """
    Get reservation by ID.

    Returns:
        Reservation dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute(RESERVATION_SELECT + ' WHERE r.id = ?', (reservation_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_status_history(reservation_id: int) -> list:
    """
    Get status change history for a reservation.

    Returns:
        List of history entries, oldest first
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT id, reservation_id, action, status, changed_by, notes, created_at
        FROM reservation_status_history
        WHERE reservation_id = ?
        ORDER BY created_at, id
    ''', (reservation_id,))
    return [dict(row) for row in cursor.fetchall()]
