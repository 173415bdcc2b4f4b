"""
Reservation CRUD operations.
Handles create, update and cancel for reservations.

Writes run inside BEGIN IMMEDIATE transactions: the capacity check reads
the current reservations under the database write lock and the insert
commits under the same lock, so two bookings can never both take the last
unit of a resource.
"""

import logging
import sqlite3

from database import immediate_transaction
from utils.errors import (
    ReservationInputError,
    ResourceNotFoundError,
    CapacityExceededError,
    ResourceUnavailableError,
    ConcurrentBookingError,
    ReservationNotFoundError,
    ReservationAlreadyCancelledError,
)
from utils.messages import get_message
from utils.datetime_helpers import format_datetime
from .availability import is_available
from .booking_validation import (
    normalize_booking_request,
    validate_booking,
    parse_booking_times,
    resolve_quantity,
    check_capacity,
)
from .reservation_queries import get_reservation_by_id, get_overlapping_reservations
from .resource import get_resource

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    'resource_type', 'resource_id', 'title', 'start_time', 'end_time',
    'quantity', 'project_id', 'task_id', 'notes'
)


# =============================================================================
# HELPERS
# =============================================================================

def resolve_resource(request: dict) -> dict:
    """
    Load the resource a normalized request points at.

    Returns:
        Resource dict, or None when no resource was selected or it does not exist

    Raises:
        ReservationInputError: Unknown resource type
    """
    if request.get('resource_id') is None:
        return None
    if not request.get('resource_type'):
        raise ReservationInputError(
            get_message('resource_required'), code='resource_required', field='resource_type'
        )
    return get_resource(request['resource_type'], request['resource_id'])


def prepare_booking(payload: dict, recurrence: dict = None) -> dict:
    """
    Normalize and validate a booking payload before taking the write lock.

    Everything except conflicts with other reservations is checked here.

    Args:
        payload: Raw request payload
        recurrence: Parsed recurrence settings (optional)

    Returns:
        dict: {request, resource, start, end, quantity}

    Raises:
        ReservationError: First failed check
    """
    request = normalize_booking_request(payload)
    resource = resolve_resource(request)

    is_valid, error = validate_booking(request, resource, [], recurrence=recurrence)
    if not is_valid:
        raise error

    start, end = parse_booking_times(request)
    return {
        'request': request,
        'resource': resource,
        'start': start,
        'end': end,
        'quantity': resolve_quantity(resource['resource_type'], request.get('quantity')),
    }


def _check_locked(booking: dict, snapshot: list = None, exclude_reservation_id: int = None) -> None:
    """
    Capacity check against the store. Must run inside the write transaction.

    The resource row is read again under the lock so a concurrent status or
    quantity change is seen.

    Raises:
        ResourceNotFoundError: The resource was removed
        ResourceUnavailableError, CapacityExceededError
        ConcurrentBookingError: The caller's snapshot had room but the store no longer does
    """
    resource = get_resource(booking['resource']['resource_type'], booking['resource']['id'])
    if resource is None:
        raise ResourceNotFoundError(get_message('resource_not_found'))
    current = get_overlapping_reservations(
        resource['resource_type'], resource['id'],
        booking['start'], booking['end'],
        exclude_reservation_id=exclude_reservation_id
    )
    try:
        check_capacity(
            resource, booking['start'], booking['end'], booking['quantity'], current,
            exclude_reservation_id=exclude_reservation_id
        )
    except CapacityExceededError as e:
        if (snapshot is not None and not isinstance(e, ResourceUnavailableError)
                and is_available(resource, booking['start'], booking['end'], snapshot,
                                 quantity=booking['quantity'],
                                 exclude_reservation_id=exclude_reservation_id)):
            raise ConcurrentBookingError(
                get_message('availability_changed'),
                available_quantity=e.available_quantity,
                requested_quantity=e.requested_quantity
            ) from e
        raise


def _record_history(cursor, reservation_id: int, action: str, status: str,
                    changed_by: str = None, notes: str = None) -> None:
    cursor.execute('''
        INSERT INTO reservation_status_history
        (reservation_id, action, status, changed_by, notes, created_at)
        VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
    ''', (reservation_id, action, status, changed_by, notes))


def book_locked(cursor, booking: dict, reserver_id: int, changed_by: str = None,
                snapshot: list = None) -> int:
    """
    Check capacity and insert one reservation inside an open write transaction.

    Args:
        cursor: Cursor from immediate_transaction()
        booking: dict from prepare_booking
        reserver_id: User making the booking
        changed_by: Username for the history entry
        snapshot: Reservations the caller based its decision on (optional)

    Returns:
        int: New reservation ID
    """
    _check_locked(booking, snapshot=snapshot)

    request = booking['request']
    resource = booking['resource']
    cursor.execute('''
        INSERT INTO reservations (
            resource_type, resource_id, reserver_id, project_id, task_id,
            title, start_time, end_time, quantity, status, notes,
            created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 'active', ?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
    ''', (
        resource['resource_type'], resource['id'], reserver_id,
        request.get('project_id'), request.get('task_id'),
        request['title'],
        format_datetime(booking['start']), format_datetime(booking['end']),
        booking['quantity'], request.get('notes')
    ))
    reservation_id = cursor.lastrowid

    _record_history(cursor, reservation_id, 'created', 'active', changed_by, 'Reservation created')
    return reservation_id


def _raise_lock_error(error: sqlite3.OperationalError):
    """Re-raise a busy/locked database as a retryable booking error."""
    message = str(error).lower()
    if 'locked' not in message and 'busy' not in message:
        raise error
    logger.warning(f'Write lock not acquired: {error}')
    raise ConcurrentBookingError(get_message('availability_changed')) from error


# =============================================================================
# CREATE
# =============================================================================

def create_reservation(payload: dict, reserver_id: int, snapshot: list = None,
                       changed_by: str = None) -> dict:
    """
    Create a single reservation.

    Args:
        payload: Booking fields (resource_type, resource_id, title,
                 start_time, end_time, quantity, project_id, task_id, notes)
        reserver_id: User making the booking
        snapshot: Reservations the caller checked availability against.
                  When given and it showed room that is no longer there,
                  ConcurrentBookingError is raised instead of CapacityExceededError.
        changed_by: Username for the history entry

    Returns:
        dict: Created reservation

    Raises:
        ReservationError: Validation, capacity or concurrency failure
    """
    booking = prepare_booking(payload)
    resource = booking['resource']

    try:
        with immediate_transaction() as cursor:
            reservation_id = book_locked(
                cursor, booking, reserver_id, changed_by=changed_by, snapshot=snapshot
            )
    except sqlite3.OperationalError as e:
        _raise_lock_error(e)
    except CapacityExceededError as e:
        logger.info(
            f'Rejected booking on {resource["resource_type"]} {resource["id"]} '
            f'{booking["start"]}..{booking["end"]}: {e.code}'
        )
        raise

    logger.info(
        f'Reservation {reservation_id} created on {resource["resource_type"]} {resource["id"]} '
        f'x{booking["quantity"]} {booking["start"]}..{booking["end"]} by user {reserver_id}'
    )
    return get_reservation_by_id(reservation_id)


# =============================================================================
# UPDATE
# =============================================================================

def update_reservation(reservation_id: int, payload: dict, changed_by: str = None,
                       snapshot: list = None) -> dict:
    """
    Update a reservation.

    A change of resource, time or quantity re-runs the capacity check with
    the reservation's own allocation excluded, so shrinking or shifting a
    booking within its current footprint never conflicts with itself.

    Args:
        reservation_id: Reservation ID
        payload: Fields to change (see EDITABLE_FIELDS)
        changed_by: Username for the history entry
        snapshot: Reservations the caller checked availability against

    Returns:
        dict: Updated reservation

    Raises:
        ReservationNotFoundError, ReservationAlreadyCancelledError,
        ReservationError: Validation or capacity failure
    """
    try:
        with immediate_transaction() as cursor:
            existing = get_reservation_by_id(reservation_id)
            if not existing:
                raise ReservationNotFoundError(get_message('reservation_not_found'))
            if existing['status'] != 'active':
                raise ReservationAlreadyCancelledError(get_message('already_cancelled'))

            merged = {field: existing[field] for field in EDITABLE_FIELDS}
            merged.update({k: v for k, v in (payload or {}).items() if k in EDITABLE_FIELDS})

            request = normalize_booking_request(merged)
            resource = resolve_resource(request)
            is_valid, error = validate_booking(
                request, resource, [], exclude_reservation_id=reservation_id
            )

            footprint_changed = False
            if resource is not None:
                booking = {
                    'request': request,
                    'resource': resource,
                    'start': None,
                    'end': None,
                    'quantity': None,
                }
                if is_valid or isinstance(error, CapacityExceededError):
                    booking['start'], booking['end'] = parse_booking_times(request)
                    booking['quantity'] = resolve_quantity(resource['resource_type'], request.get('quantity'))
                    footprint_changed = (
                        resource['resource_type'] != existing['resource_type']
                        or resource['id'] != existing['resource_id']
                        or format_datetime(booking['start']) != existing['start_time']
                        or format_datetime(booking['end']) != existing['end_time']
                        or booking['quantity'] != existing['quantity']
                    )

            if not is_valid and (footprint_changed or not isinstance(error, CapacityExceededError)):
                raise error

            if footprint_changed:
                _check_locked(booking, snapshot=snapshot, exclude_reservation_id=reservation_id)

            cursor.execute('''
                UPDATE reservations
                SET resource_type = ?, resource_id = ?, project_id = ?, task_id = ?,
                    title = ?, start_time = ?, end_time = ?, quantity = ?, notes = ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
            ''', (
                resource['resource_type'], resource['id'],
                request.get('project_id'), request.get('task_id'),
                request['title'],
                format_datetime(booking['start']), format_datetime(booking['end']),
                booking['quantity'], request.get('notes'),
                reservation_id
            ))
            _record_history(cursor, reservation_id, 'updated', 'active', changed_by, 'Reservation updated')
    except sqlite3.OperationalError as e:
        _raise_lock_error(e)

    logger.info(f'Reservation {reservation_id} updated by {changed_by}')
    return get_reservation_by_id(reservation_id)


# =============================================================================
# CANCEL
# =============================================================================

def cancel_reservation(reservation_id: int, changed_by: str = None) -> dict:
    """
    Cancel a reservation (status -> cancelled). Rows are never deleted.

    Cancelling twice is safe: the second call changes nothing and raises
    ReservationAlreadyCancelledError.

    Returns:
        dict: Cancelled reservation

    Raises:
        ReservationNotFoundError, ReservationAlreadyCancelledError
    """
    try:
        with immediate_transaction() as cursor:
            cursor.execute('''
                UPDATE reservations
                SET status = 'cancelled', updated_at = CURRENT_TIMESTAMP
                WHERE id = ? AND status = 'active'
            ''', (reservation_id,))

            if cursor.rowcount == 0:
                if get_reservation_by_id(reservation_id) is None:
                    raise ReservationNotFoundError(get_message('reservation_not_found'))
                raise ReservationAlreadyCancelledError(get_message('already_cancelled'))

            _record_history(cursor, reservation_id, 'cancelled', 'cancelled', changed_by, 'Reservation cancelled')
    except sqlite3.OperationalError as e:
        _raise_lock_error(e)

    logger.info(f'Reservation {reservation_id} cancelled by {changed_by}')
    return get_reservation_by_id(reservation_id)
