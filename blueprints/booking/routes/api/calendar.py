"""
Calendar API routes.
Day/week/month buckets and per-slot availability for the calendar views.
"""

from flask import request, current_app
from flask_login import login_required, current_user
from utils.decorators import permission_required
from utils.api_response import api_success, api_error, api_exception
from utils.errors import ReservationError
from utils.messages import MESSAGES
from utils.datetime_helpers import get_today, parse_date, format_datetime
from models.reservation import get_reservations, get_overlapping_reservations
from models.resource import get_resource, get_resource_kind
from models.calendar import (
    CALENDAR_VIEWS, view_range, day_window,
    bucket_by_day, group_day_reservations, availability_slots
)


def register_routes(bp):
    """Register calendar API routes on the blueprint."""

    @bp.route('/calendar')
    @login_required
    @permission_required('reservations.view')
    def calendar_view():
        """
        Reservations bucketed by day for a calendar view.

        Query params:
            view: 'day', 'week' or 'month' (default: month)
            date: Anchor date YYYY-MM-DD (default: today)
            resource_type, resource_id: Resource filter (optional)
            mine: 'true' for the current user's reservations
        """
        view = request.args.get('view', 'month')
        if view not in CALENDAR_VIEWS:
            return api_error(MESSAGES['invalid_value'], status=400, field='view')

        try:
            anchor = parse_date(request.args['date']) if request.args.get('date') else get_today()
        except ValueError:
            return api_error(
                MESSAGES['invalid_time'].format(value=request.args.get('date')),
                status=400, code='invalid_time'
            )

        resource_type = request.args.get('resource_type') or None
        if resource_type:
            try:
                get_resource_kind(resource_type)
            except ReservationError as e:
                return api_exception(e)

        week_starts_on = current_app.config.get('CALENDAR_WEEK_STARTS_ON', 0)
        days = view_range(view, anchor, week_starts_on)
        window_start, _ = day_window(days[0])
        _, window_end = day_window(days[-1])

        reserver_id = None
        if request.args.get('mine', '').lower() in ('1', 'true'):
            reserver_id = current_user.id

        reservations = get_reservations(
            resource_type=resource_type,
            resource_id=request.args.get('resource_id', type=int),
            start_date=window_start,
            end_date=window_end,
            reserver_id=reserver_id,
            overlapping=True
        )

        buckets = bucket_by_day(reservations, days)
        return api_success(data={
            'view': view,
            'date': anchor.isoformat(),
            'start': format_datetime(window_start),
            'end': format_datetime(window_end),
            'days': [day.isoformat() for day in days],
            'buckets': buckets,
            'groups': {day: group_day_reservations(items) for day, items in buckets.items()}
        })

    @bp.route('/availability/slots')
    @login_required
    @permission_required('reservations.view')
    def availability_slots_view():
        """
        Available quantity per slot for one resource and day.

        Query params:
            resource_type, resource_id, date (default: today),
            slot_minutes (default: AVAILABILITY_SLOT_MINUTES)
        """
        resource_type = request.args.get('resource_type')
        resource_id = request.args.get('resource_id', type=int)
        slot_minutes = request.args.get(
            'slot_minutes',
            default=current_app.config.get('AVAILABILITY_SLOT_MINUTES', 60),
            type=int
        )
        if not slot_minutes or slot_minutes < 5 or slot_minutes > 24 * 60:
            return api_error(MESSAGES['invalid_value'], status=400, field='slot_minutes')

        try:
            get_resource_kind(resource_type)
        except ReservationError as e:
            return api_exception(e)

        resource = get_resource(resource_type, resource_id) if resource_id is not None else None
        if not resource:
            return api_error(MESSAGES['resource_not_found'], status=404, code='resource_not_found')

        try:
            day = parse_date(request.args['date']) if request.args.get('date') else get_today()
        except ValueError:
            return api_error(
                MESSAGES['invalid_time'].format(value=request.args.get('date')),
                status=400, code='invalid_time'
            )

        day_start, day_end = day_window(day)
        reservations = get_overlapping_reservations(resource_type, resource_id, day_start, day_end)

        return api_success(data={
            'resource_type': resource_type,
            'resource_id': resource_id,
            'date': day.isoformat(),
            'slot_minutes': slot_minutes,
            'slots': availability_slots(
                resource, day, reservations,
                slot_minutes=slot_minutes
            ),
            'reservations': reservations
        })
