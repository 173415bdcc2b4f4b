"""
Booking validation.
Checks a booking request against its resource and the current reservations.

Checks run in a fixed order and stop at the first failure:
    1. resource selected and found
    2. title present
    3. start/end present, parseable, end after start
    4. weekly recurrence has at least one weekday
    5. quantity valid and within what is available for the window
"""

from utils.errors import (
    ReservationError,
    ReservationInputError,
    ResourceNotFoundError,
    CapacityExceededError,
    ResourceUnavailableError,
)
from utils.messages import get_message
from utils.datetime_helpers import parse_datetime
from utils.validators import validate_positive_int, sanitize_input
from .availability import available_quantity
from .resource import get_resource_kind


def _optional_int(value):
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_booking_request(data: dict) -> dict:
    """
    Pick booking fields out of a raw JSON payload.

    Values are cleaned but not validated; times and quantity are left
    as given so validate_booking can report what is wrong with them.

    Args:
        data: Raw request payload

    Returns:
        dict with resource_type, resource_id, title, start_time, end_time,
        quantity, project_id, task_id, notes
    """
    data = data or {}
    return {
        'resource_type': sanitize_input(data.get('resource_type')),
        'resource_id': _optional_int(data.get('resource_id')),
        'title': sanitize_input(data.get('title'), max_length=200),
        'start_time': data.get('start_time'),
        'end_time': data.get('end_time'),
        'quantity': data.get('quantity'),
        'project_id': _optional_int(data.get('project_id')),
        'task_id': _optional_int(data.get('task_id')),
        'notes': sanitize_input(data.get('notes'), max_length=1000) or None,
    }


def parse_booking_times(request: dict) -> tuple:
    """
    Parse and check the booking window.

    Returns:
        Tuple of (start, end) naive datetimes

    Raises:
        ReservationInputError: time_required, invalid_time or invalid_time_range
    """
    start_raw = request.get('start_time')
    end_raw = request.get('end_time')
    if start_raw in (None, '') or end_raw in (None, ''):
        raise ReservationInputError(get_message('time_required'), code='time_required', field='start_time')

    parsed = []
    for field, value in (('start_time', start_raw), ('end_time', end_raw)):
        try:
            parsed.append(parse_datetime(value))
        except (TypeError, ValueError):
            raise ReservationInputError(
                get_message('invalid_time', value=value), code='invalid_time', field=field
            )

    start, end = parsed
    if end <= start:
        raise ReservationInputError(
            get_message('invalid_time_range'), code='invalid_time_range', field='end_time'
        )
    return start, end


def resolve_quantity(resource_type: str, quantity) -> int:
    """
    Booked quantity for a request. Rooms and vehicles always book 1 unit;
    equipment defaults to 1 and must be a whole number >= 1.

    Raises:
        ReservationInputError: invalid_quantity
    """
    if resource_type != 'equipment':
        return 1
    if quantity in (None, ''):
        return 1
    if not validate_positive_int(quantity):
        raise ReservationInputError(get_message('invalid_quantity'), code='invalid_quantity', field='quantity')
    return int(quantity)


def check_capacity(resource: dict, start, end, quantity: int, reservations: list,
                   exclude_reservation_id: int = None) -> int:
    """
    Ensure `quantity` units are free for the window.

    Returns:
        int: Units available before this booking

    Raises:
        ResourceUnavailableError: Resource inactive, in maintenance or lost
        CapacityExceededError: Not enough free units
    """
    kind = get_resource_kind(resource['resource_type'])
    if not kind.is_bookable(resource):
        raise ResourceUnavailableError(
            get_message('resource_unavailable'),
            available_quantity=0,
            requested_quantity=quantity
        )

    available = available_quantity(
        resource, start, end, reservations,
        exclude_reservation_id=exclude_reservation_id
    )
    if quantity > available:
        raise CapacityExceededError(
            get_message('capacity_exceeded', available=available, requested=quantity),
            available_quantity=available,
            requested_quantity=quantity
        )
    return available


def validate_booking(request: dict, resource: dict, reservations: list,
                     exclude_reservation_id: int = None, recurrence: dict = None) -> tuple:
    """
    Validate a booking request.

    Args:
        request: Normalized request (see normalize_booking_request)
        resource: Resolved resource dict, or None if it could not be found
        reservations: Reservations relevant to the window
        exclude_reservation_id: Reservation being edited
        recurrence: Parsed recurrence settings (optional)

    Returns:
        Tuple of (is_valid, error) where error is a ReservationError or None
    """
    try:
        if request.get('resource_id') is None:
            raise ReservationInputError(
                get_message('resource_required'), code='resource_required', field='resource_id'
            )
        if resource is None:
            raise ResourceNotFoundError(get_message('resource_not_found'))

        if not (request.get('title') or '').strip():
            raise ReservationInputError(get_message('title_required'), code='title_required', field='title')

        start, end = parse_booking_times(request)

        if recurrence and recurrence.get('type') == 'weekly' and not recurrence.get('week_days'):
            raise ReservationInputError(
                get_message('week_days_required'), code='week_days_required', field='week_days'
            )

        quantity = resolve_quantity(resource['resource_type'], request.get('quantity'))
        check_capacity(
            resource, start, end, quantity, reservations,
            exclude_reservation_id=exclude_reservation_id
        )
    except ReservationError as e:
        return False, e

    return True, None
