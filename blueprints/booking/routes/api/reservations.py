"""
Reservation API routes including availability, batches and recurrence preview.
"""

from flask import request, current_app
from flask_login import login_required, current_user
from utils.decorators import permission_required
from utils.api_response import api_success, api_error, api_exception
from utils.errors import ReservationError, ReservationInputError, ReservationPermissionError
from utils.messages import MESSAGES, get_message
from utils.permissions import is_admin
from utils.datetime_helpers import format_datetime
from models.reservation import (
    get_reservations, get_reservation_by_id, get_overlapping_reservations,
    get_status_history, create_reservation, update_reservation,
    cancel_reservation, create_recurring_reservations,
    create_equipment_rental_batch
)
from models.resource import get_resource, get_resource_kind
from models.availability import available_quantity, booked_quantity
from models.booking_validation import parse_booking_times
from models.recurrence import parse_recurrence, expand_recurrence, describe_recurrence, MAX_OCCURRENCES


def register_routes(bp):
    """Register reservation API routes on the blueprint."""

    def _changed_by():
        return current_user.username if current_user else 'system'

    def _check_can_modify(reservation, message_key):
        if reservation['reserver_id'] != current_user.id and not is_admin(current_user):
            raise ReservationPermissionError(MESSAGES[message_key])

    def _batch_response(result):
        status = 201 if result['total_created'] else 409
        return api_success(
            data=result,
            message=get_message(
                'reservations_created',
                created=result['total_created'],
                total=result['total_requested']
            ),
            status=status
        )

    # ============================================================================
    # LIST / CREATE
    # ============================================================================

    @bp.route('/reservations')
    @login_required
    @permission_required('reservations.view')
    def reservations_list():
        """
        List reservations.

        Query params:
            resource_type, resource_id: Resource filter
            start_date, end_date: Only reservations fully inside the window
            status: 'active' (default), 'cancelled' or 'all'
            mine: 'true' for the current user's reservations
        """
        status = request.args.get('status', 'active')
        if status == 'all':
            status = None

        reserver_id = None
        if request.args.get('mine', '').lower() in ('1', 'true'):
            reserver_id = current_user.id

        try:
            reservations = get_reservations(
                resource_type=request.args.get('resource_type') or None,
                resource_id=request.args.get('resource_id', type=int),
                start_date=request.args.get('start_date') or None,
                end_date=request.args.get('end_date') or None,
                status=status,
                reserver_id=reserver_id
            )
        except ValueError as e:
            return api_error(str(e), status=400, code='invalid_time')

        return api_success(data=reservations)

    @bp.route('/reservations', methods=['POST'])
    @login_required
    @permission_required('reservations.create')
    def reservations_create():
        """
        Create a reservation, or a recurring series when 'recurrence' is given.

        Request body:
            resource_type, resource_id, title, start_time, end_time,
            quantity (equipment), project_id, task_id, notes,
            recurrence: {type, interval, week_days, end_date, has_end_date},
            all_or_nothing: book the whole series or nothing
        """
        if not current_user.can_book:
            return api_error(MESSAGES['bu_required'], status=403, code='bu_required')

        data = request.get_json(silent=True) or {}
        recurrence = data.get('recurrence')

        try:
            if isinstance(recurrence, dict) and recurrence.get('type', 'none') != 'none':
                result = create_recurring_reservations(
                    data, recurrence, current_user.id,
                    all_or_nothing=bool(data.get('all_or_nothing')),
                    changed_by=_changed_by()
                )
                return _batch_response(result)

            reservation = create_reservation(data, current_user.id, changed_by=_changed_by())
        except ReservationError as e:
            return api_exception(e)

        return api_success(
            data=reservation,
            message=MESSAGES['reservation_created'],
            status=201
        )

    # ============================================================================
    # DETAIL / UPDATE / CANCEL
    # ============================================================================

    @bp.route('/reservations/<int:reservation_id>')
    @login_required
    @permission_required('reservations.view')
    def reservation_detail(reservation_id):
        """Get reservation details as JSON."""
        reservation = get_reservation_by_id(reservation_id)
        if not reservation:
            return api_error(MESSAGES['reservation_not_found'], status=404, code='reservation_not_found')
        return api_success(data=reservation)

    @bp.route('/reservations/<int:reservation_id>', methods=['PATCH'])
    @login_required
    @permission_required('reservations.create')
    def reservation_update(reservation_id):
        """Edit a reservation (owner or admin)."""
        reservation = get_reservation_by_id(reservation_id)
        if not reservation:
            return api_error(MESSAGES['reservation_not_found'], status=404, code='reservation_not_found')

        data = request.get_json(silent=True) or {}
        try:
            _check_can_modify(reservation, 'not_owner_edit')
            updated = update_reservation(reservation_id, data, changed_by=_changed_by())
        except ReservationError as e:
            return api_exception(e)

        return api_success(data=updated, message=MESSAGES['reservation_updated'])

    @bp.route('/reservations/<int:reservation_id>', methods=['DELETE'])
    @login_required
    @permission_required('reservations.create')
    def reservation_cancel(reservation_id):
        """Cancel a reservation (owner or admin). The row is kept."""
        reservation = get_reservation_by_id(reservation_id)
        if not reservation:
            return api_error(MESSAGES['reservation_not_found'], status=404, code='reservation_not_found')

        try:
            _check_can_modify(reservation, 'not_owner_cancel')
            cancelled = cancel_reservation(reservation_id, changed_by=_changed_by())
        except ReservationError as e:
            return api_exception(e)

        return api_success(data=cancelled, message=MESSAGES['reservation_cancelled'])

    @bp.route('/reservations/<int:reservation_id>/history')
    @login_required
    @permission_required('reservations.view')
    def reservation_history(reservation_id):
        """Get reservation status change history."""
        if not get_reservation_by_id(reservation_id):
            return api_error(MESSAGES['reservation_not_found'], status=404, code='reservation_not_found')

        history = get_status_history(reservation_id)
        return api_success(data=[{
            'action': h.get('action'),
            'status': h.get('status'),
            'changed_by': h.get('changed_by'),
            'notes': h.get('notes'),
            'created_at': h.get('created_at')
        } for h in history])

    # ============================================================================
    # AVAILABILITY
    # ============================================================================

    @bp.route('/availability')
    @login_required
    @permission_required('reservations.view')
    def availability():
        """
        Free quantity of a resource for a window.

        Query params:
            resource_type, resource_id, start_time, end_time,
            exclude_reservation_id (when editing)
        """
        resource_type = request.args.get('resource_type')
        resource_id = request.args.get('resource_id', type=int)
        exclude_id = request.args.get('exclude_reservation_id', type=int)

        try:
            if not resource_type or resource_id is None:
                raise ReservationInputError(
                    MESSAGES['resource_required'], code='resource_required', field='resource_id'
                )
            kind = get_resource_kind(resource_type)
            resource = get_resource(resource_type, resource_id)
            if not resource:
                return api_error(MESSAGES['resource_not_found'], status=404, code='resource_not_found')

            start, end = parse_booking_times({
                'start_time': request.args.get('start_time'),
                'end_time': request.args.get('end_time')
            })
        except ReservationError as e:
            return api_exception(e)

        conflicts = get_overlapping_reservations(
            resource_type, resource_id, start, end, exclude_reservation_id=exclude_id
        )
        return api_success(data={
            'resource_type': resource_type,
            'resource_id': resource_id,
            'start_time': format_datetime(start),
            'end_time': format_datetime(end),
            'capacity': kind.capacity_at(resource, start),
            'bookable': kind.is_bookable(resource),
            'booked_quantity': booked_quantity(resource_type, resource_id, start, end, conflicts),
            'available_quantity': available_quantity(resource, start, end, conflicts),
            'conflicts': conflicts
        })

    # ============================================================================
    # BATCHES
    # ============================================================================

    @bp.route('/equipment-rentals', methods=['POST'])
    @login_required
    @permission_required('reservations.create')
    def equipment_rentals_create():
        """
        Rent several pieces of equipment for one window.

        Request body:
            items: [{resource_id, quantity}, ...]
            title, start_time, end_time, project_id, task_id, notes
        """
        if not current_user.can_book:
            return api_error(MESSAGES['bu_required'], status=403, code='bu_required')

        data = request.get_json(silent=True) or {}
        try:
            result = create_equipment_rental_batch(
                data.get('items') or [], data, current_user.id, changed_by=_changed_by()
            )
        except ReservationError as e:
            return api_exception(e)

        return _batch_response(result)

    @bp.route('/recurrence/preview', methods=['POST'])
    @login_required
    @permission_required('reservations.view')
    def recurrence_preview():
        """
        Expand a recurrence without booking anything.

        Request body:
            start_time, end_time, recurrence,
            resource_type, resource_id (optional: adds per-occurrence availability)
        """
        data = request.get_json(silent=True) or {}
        try:
            start, end = parse_booking_times(data)
            settings = parse_recurrence(data.get('recurrence'))
            if settings['type'] == 'weekly' and not settings['week_days']:
                raise ReservationInputError(
                    MESSAGES['week_days_required'], code='week_days_required', field='week_days'
                )

            resource = None
            if data.get('resource_type') and data.get('resource_id') is not None:
                resource = get_resource(data['resource_type'], data['resource_id'])
        except ReservationError as e:
            return api_exception(e)

        max_occurrences = current_app.config.get('RECURRENCE_MAX_OCCURRENCES', MAX_OCCURRENCES)
        occurrences = []
        for occ_start, occ_end in expand_recurrence(start, end, settings, max_occurrences):
            entry = {
                'start_time': format_datetime(occ_start),
                'end_time': format_datetime(occ_end)
            }
            if resource:
                conflicts = get_overlapping_reservations(
                    resource['resource_type'], resource['id'], occ_start, occ_end
                )
                entry['available_quantity'] = available_quantity(resource, occ_start, occ_end, conflicts)
            occurrences.append(entry)

        return api_success(data={
            'description': describe_recurrence(settings),
            'count': len(occurrences),
            'occurrences': occurrences
        })
