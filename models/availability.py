"""
Availability calculation.
Pure functions over a resource and a list of reservation dicts; no database access.

A reservation occupies [start_time, end_time). Two intervals overlap when
each starts before the other ends, so back-to-back bookings never conflict.
"""

from datetime import datetime, timedelta

from utils.datetime_helpers import parse_datetime, get_now
from .resource import get_resource_kind


def intervals_overlap(s1, e1, s2, e2) -> bool:
    """True if [s1, e1) and [s2, e2) share at least one instant."""
    return s1 < e2 and e1 > s2


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return parse_datetime(value)


def booked_quantity(resource_type: str, resource_id: int, window_start, window_end,
                    reservations: list, exclude_reservation_id: int = None) -> int:
    """
    Sum the quantity of active reservations on a resource overlapping a window.

    Every overlapping reservation counts in full, whether or not it overlaps
    the others, so the result is an upper bound on peak usage.

    Args:
        resource_type: Resource type
        resource_id: Resource ID
        window_start: Window start (datetime or ISO string)
        window_end: Window end (datetime or ISO string)
        reservations: Reservation dicts (any resource, any status)
        exclude_reservation_id: Reservation to ignore (the one being edited)

    Returns:
        int: Units booked
    """
    window_start = _as_datetime(window_start)
    window_end = _as_datetime(window_end)
    total = 0

    for reservation in reservations:
        if reservation.get('status', 'active') != 'active':
            continue
        if reservation['resource_type'] != resource_type:
            continue
        if int(reservation['resource_id']) != int(resource_id):
            continue
        if exclude_reservation_id is not None and reservation.get('id') == exclude_reservation_id:
            continue
        if intervals_overlap(
            _as_datetime(reservation['start_time']),
            _as_datetime(reservation['end_time']),
            window_start,
            window_end
        ):
            total += reservation.get('quantity') or 1

    return total


def peak_booked_quantity(resource_type: str, resource_id: int, reservations: list) -> int:
    """
    Highest number of units of a resource in use at any single instant.

    Unlike booked_quantity, reservations that do not overlap each other are
    not added up.
    """
    events = []
    for reservation in reservations:
        if reservation.get('status', 'active') != 'active':
            continue
        if reservation['resource_type'] != resource_type:
            continue
        if int(reservation['resource_id']) != int(resource_id):
            continue
        quantity = reservation.get('quantity') or 1
        events.append((_as_datetime(reservation['start_time']), quantity))
        events.append((_as_datetime(reservation['end_time']), -quantity))

    # Releases sort first: a booking starting as another ends does not stack
    events.sort(key=lambda event: (event[0], event[1]))
    peak = in_use = 0
    for _, delta in events:
        in_use += delta
        peak = max(peak, in_use)
    return peak


def available_quantity(resource: dict, window_start, window_end, reservations: list,
                       exclude_reservation_id: int = None) -> int:
    """
    Units of a resource still free for a window.

    Args:
        resource: Resource dict tagged with 'resource_type'
        window_start: Window start
        window_end: Window end
        reservations: Reservation dicts
        exclude_reservation_id: Reservation to ignore (for edits)

    Returns:
        int: max(0, capacity - booked); 0 when the resource is not bookable
    """
    kind = get_resource_kind(resource['resource_type'])
    if not kind.is_bookable(resource):
        return 0

    capacity = kind.capacity_at(resource, window_start)
    booked = booked_quantity(
        resource['resource_type'], resource['id'],
        window_start, window_end, reservations,
        exclude_reservation_id=exclude_reservation_id
    )
    return max(0, capacity - booked)


def is_available(resource: dict, start, end, reservations: list, quantity: int = 1,
                 exclude_reservation_id: int = None) -> bool:
    return available_quantity(
        resource, start, end, reservations,
        exclude_reservation_id=exclude_reservation_id
    ) >= quantity


def equipment_status(resource: dict, reservations: list, at=None) -> dict:
    """
    Summarize equipment usage at one instant for listing views.

    Args:
        resource: Equipment dict
        reservations: Reservation dicts
        at: Instant to inspect (default: now)

    Returns:
        dict: {
            'resource_id', 'name', 'total_qty', 'rented_qty',
            'available_qty', 'label'
        }
        label is one of available, partially_rented, fully_rented,
        maintenance, lost, inactive
    """
    at = _as_datetime(at) if at is not None else get_now()
    kind = get_resource_kind(resource['resource_type'])
    total_qty = kind.capacity_at(resource, at)
    rented_qty = booked_quantity(
        resource['resource_type'], resource['id'],
        at, at + timedelta(seconds=1), reservations
    )

    if not resource.get('active', 1):
        label = 'inactive'
    elif resource.get('status') in ('maintenance', 'lost'):
        label = resource['status']
    elif resource.get('status') == 'rented' or rented_qty >= total_qty:
        label = 'fully_rented'
    elif rented_qty > 0:
        label = 'partially_rented'
    else:
        label = 'available'

    if kind.is_bookable(resource):
        available_qty = max(0, total_qty - rented_qty)
    else:
        available_qty = 0

    return {
        'resource_id': resource['id'],
        'name': resource.get('name'),
        'total_qty': total_qty,
        'rented_qty': min(rented_qty, total_qty),
        'available_qty': available_qty,
        'label': label
    }
