"""
Resource registry API routes.
Meeting rooms, vehicles and equipment share one set of endpoints keyed by kind.
"""

from flask import request, current_app
from flask_login import login_required
from utils.decorators import permission_required
from utils.api_response import api_success, api_error
from utils.datetime_helpers import parse_datetime
from utils.messages import MESSAGES
from models.resource import (
    get_kind_by_url_name, list_resources, get_resource,
    create_resource, update_resource, delete_resource
)
from models.reservation import get_reservations
from models.availability import equipment_status


def register_routes(bp):
    """Register resource API routes on the blueprint."""

    def _kind_or_404(kind_name):
        kind = get_kind_by_url_name(kind_name)
        if kind is None:
            return None, api_error(MESSAGES['not_found'], status=404)
        return kind, None

    def _fields(kind, data):
        return {name: data[name] for name in kind.fields if name in data}

    # ============================================================================
    # EQUIPMENT STATUS
    # ============================================================================

    @bp.route('/equipment/status')
    @login_required
    @permission_required('resources.view')
    def equipment_status_list():
        """
        Usage summary for every piece of equipment at one instant.

        Query params:
            at: ISO date-time (default: now)
        """
        try:
            at = parse_datetime(request.args['at']) if request.args.get('at') else None
        except ValueError:
            return api_error(MESSAGES['invalid_time'].format(value=request.args.get('at')), status=400)

        equipment = list_resources('equipment')
        reservations = get_reservations(resource_type='equipment')
        return api_success(data=[equipment_status(item, reservations, at=at) for item in equipment])

    # ============================================================================
    # RESOURCE CRUD
    # ============================================================================

    @bp.route('/<kind_name>')
    @login_required
    @permission_required('resources.view')
    def resources_list(kind_name):
        """
        List resources of a kind.

        Query params:
            active: 'true' to only list bookable resources
        """
        kind, error = _kind_or_404(kind_name)
        if error:
            return error

        active_only = request.args.get('active', '').lower() in ('1', 'true')
        return api_success(data=list_resources(kind.resource_type, active_only=active_only))

    @bp.route('/<kind_name>', methods=['POST'])
    @login_required
    @permission_required('resources.manage')
    def resources_create(kind_name):
        """Create a resource."""
        kind, error = _kind_or_404(kind_name)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        try:
            resource_id = create_resource(kind.resource_type, **_fields(kind, data))
        except ValueError as e:
            return api_error(str(e), status=400)

        return api_success(
            data=get_resource(kind.resource_type, resource_id),
            message=MESSAGES['resource_created'],
            status=201
        )

    @bp.route('/<kind_name>/<int:resource_id>')
    @login_required
    @permission_required('resources.view')
    def resources_detail(kind_name, resource_id):
        """Get one resource."""
        kind, error = _kind_or_404(kind_name)
        if error:
            return error

        resource = get_resource(kind.resource_type, resource_id)
        if not resource:
            return api_error(MESSAGES['resource_not_found'], status=404, code='resource_not_found')
        return api_success(data=resource)

    @bp.route('/<kind_name>/<int:resource_id>', methods=['PATCH'])
    @login_required
    @permission_required('resources.manage')
    def resources_update(kind_name, resource_id):
        """Update a resource."""
        kind, error = _kind_or_404(kind_name)
        if error:
            return error

        if not get_resource(kind.resource_type, resource_id):
            return api_error(MESSAGES['resource_not_found'], status=404, code='resource_not_found')

        data = request.get_json(silent=True) or {}
        try:
            update_resource(kind.resource_type, resource_id, **_fields(kind, data))
        except ValueError as e:
            return api_error(str(e), status=400)

        return api_success(
            data=get_resource(kind.resource_type, resource_id),
            message=MESSAGES['resource_updated']
        )

    @bp.route('/<kind_name>/<int:resource_id>', methods=['DELETE'])
    @login_required
    @permission_required('resources.manage')
    def resources_delete(kind_name, resource_id):
        """Deactivate a resource with no upcoming reservations."""
        kind, error = _kind_or_404(kind_name)
        if error:
            return error

        if not get_resource(kind.resource_type, resource_id):
            return api_error(MESSAGES['resource_not_found'], status=404, code='resource_not_found')

        try:
            delete_resource(kind.resource_type, resource_id)
        except ValueError as e:
            current_app.logger.info(f'Refused to delete {kind.resource_type} {resource_id}: {e}')
            return api_error(str(e), status=409, code='resource_has_reservations')

        return api_success(message=MESSAGES['resource_deleted'])
