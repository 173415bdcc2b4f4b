"""
Batch reservation operations.
Recurring series, multi-equipment rentals and compensating cancellation.

Batches are submitted one reservation at a time. By default each
occurrence stands alone: a failure is reported and earlier successes are
kept. Recurring series can instead be booked all-or-nothing inside a
single write transaction.
"""

import logging
import sqlite3

from flask import current_app

from database import immediate_transaction
from utils.errors import ReservationError, ReservationInputError, ConcurrentBookingError
from utils.messages import get_message
from utils.datetime_helpers import format_datetime
from utils.validators import validate_positive_int
from .availability import available_quantity
from .booking_validation import normalize_booking_request, parse_booking_times
from .recurrence import parse_recurrence, expand_recurrence, MAX_OCCURRENCES
from .reservation_crud import prepare_booking, book_locked, create_reservation, cancel_reservation
from .reservation_queries import get_reservation_by_id, get_overlapping_reservations
from .resource import get_resource

logger = logging.getLogger(__name__)


def _failure(index: int, error: ReservationError, start=None, end=None, resource_id=None) -> dict:
    entry = {
        'index': index,
        'start_time': format_datetime(start) if start else None,
        'end_time': format_datetime(end) if end else None,
        'resource_id': resource_id,
    }
    entry.update(error.to_dict())
    return entry


def _result(created: list, failed: list, total_requested: int) -> dict:
    return {
        'created': created,
        'failed': failed,
        'total_requested': total_requested,
        'total_created': len(created),
        'all_created': total_requested > 0 and len(created) == total_requested,
    }


# =============================================================================
# RECURRING SERIES
# =============================================================================

def create_recurring_reservations(
    payload: dict,
    recurrence: dict,
    reserver_id: int,
    all_or_nothing: bool = False,
    changed_by: str = None
) -> dict:
    """
    Expand a recurring booking and create one reservation per occurrence.

    Args:
        payload: Base booking (its start/end are the first occurrence)
        recurrence: Recurrence settings (raw or parsed)
        reserver_id: User making the booking
        all_or_nothing: Book every occurrence in one transaction, or none
        changed_by: Username for history entries

    Returns:
        dict: {
            'created': [reservation, ...],
            'failed': [{'index', 'start_time', 'end_time', 'resource_id',
                        'code', 'error', ...}],
            'total_requested': int,
            'total_created': int,
            'all_created': bool
        }

    Raises:
        ReservationError: If the base booking itself is invalid
    """
    settings = parse_recurrence(recurrence)
    booking = prepare_booking(payload, recurrence=settings)
    resource = booking['resource']

    max_occurrences = current_app.config.get('RECURRENCE_MAX_OCCURRENCES', MAX_OCCURRENCES)
    occurrences = expand_recurrence(booking['start'], booking['end'], settings, max_occurrences)

    created = []
    failed = []

    if all_or_nothing:
        index = 0
        start = end = None
        created_ids = []
        try:
            with immediate_transaction() as cursor:
                for index, (start, end) in enumerate(occurrences):
                    occurrence = dict(booking, start=start, end=end)
                    created_ids.append(
                        book_locked(cursor, occurrence, reserver_id, changed_by=changed_by)
                    )
        except ReservationError as e:
            failed.append(_failure(index, e, start, end, resource['id']))
            created_ids = []
        except sqlite3.OperationalError as e:
            logger.warning(f'Recurring series not booked, write lock not acquired: {e}')
            failed.append(_failure(
                index, ConcurrentBookingError(get_message('availability_changed')),
                start, end, resource['id']
            ))
            created_ids = []
        created = [get_reservation_by_id(reservation_id) for reservation_id in created_ids]
    else:
        for index, (start, end) in enumerate(occurrences):
            occurrence_payload = dict(
                payload,
                start_time=format_datetime(start),
                end_time=format_datetime(end)
            )
            try:
                created.append(create_reservation(
                    occurrence_payload, reserver_id, changed_by=changed_by
                ))
            except ReservationError as e:
                failed.append(_failure(index, e, start, end, resource['id']))

    result = _result(created, failed, len(occurrences))
    logger.info(
        f'Recurring booking on {resource["resource_type"]} {resource["id"]} '
        f'({settings["type"]}): {result["total_created"]}/{result["total_requested"]} created'
    )
    return result


# =============================================================================
# MULTI-EQUIPMENT RENTAL
# =============================================================================

def create_equipment_rental_batch(items: list, payload: dict, reserver_id: int,
                                  changed_by: str = None) -> dict:
    """
    Rent several pieces of equipment for one shared window.

    Each item's quantity is clamped into [1, available] for the window
    before it is submitted, so asking for more than is free books what is
    left instead of failing. Items are submitted independently.

    Args:
        items: [{'resource_id': int, 'quantity': int}, ...]
        payload: Shared fields (title, start_time, end_time, project_id, task_id, notes)
        reserver_id: User making the booking
        changed_by: Username for history entries

    Returns:
        dict: Same shape as create_recurring_reservations; each created
        reservation also carries 'requested_quantity'

    Raises:
        ReservationInputError: No items, missing title or bad window
    """
    if not items:
        raise ReservationInputError(
            get_message('equipment_selection_required'),
            code='resource_required',
            field='items'
        )

    request = normalize_booking_request(payload)
    if not request['title']:
        raise ReservationInputError(get_message('title_required'), code='title_required', field='title')
    start, end = parse_booking_times(request)

    created = []
    failed = []

    for index, item in enumerate(items):
        resource_id = (item or {}).get('resource_id')
        requested = (item or {}).get('quantity') or 1
        if validate_positive_int(requested):
            requested = int(requested)
        try:
            resource = get_resource('equipment', resource_id) if resource_id is not None else None
            snapshot = []
            quantity = requested
            if resource is not None:
                snapshot = get_overlapping_reservations('equipment', resource['id'], start, end)
                available = available_quantity(resource, start, end, snapshot)
                if isinstance(requested, int):
                    quantity = max(1, min(requested, available))

            reservation = create_reservation(
                dict(payload, resource_type='equipment', resource_id=resource_id, quantity=quantity),
                reserver_id,
                snapshot=snapshot if resource is not None else None,
                changed_by=changed_by
            )
            reservation['requested_quantity'] = requested
            created.append(reservation)
        except ReservationError as e:
            failed.append(_failure(index, e, start, end, resource_id))

    result = _result(created, failed, len(items))
    logger.info(
        f'Equipment rental batch {start}..{end}: '
        f'{result["total_created"]}/{result["total_requested"]} created by user {reserver_id}'
    )
    return result


# =============================================================================
# CANCELLATION
# =============================================================================

def cancel_reservations(reservation_ids: list, changed_by: str = None) -> dict:
    """
    Cancel several reservations, e.g. to undo a partially created batch.

    Returns:
        dict: {'cancelled': [id, ...], 'failed': [{'id', 'code', 'error'}]}
    """
    cancelled = []
    failed = []

    for reservation_id in reservation_ids or []:
        try:
            cancel_reservation(reservation_id, changed_by=changed_by)
            cancelled.append(reservation_id)
        except ReservationError as e:
            entry = {'id': reservation_id}
            entry.update(e.to_dict())
            failed.append(entry)

    return {'cancelled': cancelled, 'failed': failed}
