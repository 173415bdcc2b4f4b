"""
Resource registry.
Meeting rooms, vehicles and equipment: kinds, CRUD and field validation.

Each resource type has its own table. A ResourceKind describes the table,
its writable fields and how many units the resource offers, so the
availability code never branches on the concrete type.
"""

import logging

from database import get_db, immediate_transaction
from utils.errors import ReservationInputError
from utils.messages import get_message
from utils.datetime_helpers import get_now, format_datetime

logger = logging.getLogger(__name__)

EQUIPMENT_STATUSES = ('available', 'rented', 'maintenance', 'lost')


# =============================================================================
# RESOURCE KINDS
# =============================================================================

class ResourceKind:
    """Single-unit resource stored in its own table."""

    def __init__(self, resource_type: str, table: str, url_name: str, fields: tuple):
        self.resource_type = resource_type
        self.table = table
        self.url_name = url_name
        self.fields = fields

    def capacity_at(self, resource: dict, when=None) -> int:
        """Units the resource offers at ``when``. Rooms and vehicles: 1."""
        return 1

    def is_bookable(self, resource: dict) -> bool:
        return bool(resource.get('active', 1))

    @property
    def label(self) -> str:
        return get_message(f'resource_{self.resource_type}')

    def __repr__(self):
        return f'<ResourceKind {self.resource_type}>'


class EquipmentKind(ResourceKind):
    """Multi-unit equipment; only 'available' equipment takes bookings."""

    def capacity_at(self, resource: dict, when=None) -> int:
        return int(resource.get('quantity') or 1)

    def is_bookable(self, resource: dict) -> bool:
        return super().is_bookable(resource) and resource.get('status', 'available') == 'available'


RESOURCE_KINDS = {
    'meeting_room': ResourceKind(
        'meeting_room', 'meeting_rooms', 'meeting-rooms',
        ('name', 'description', 'capacity', 'location', 'active')
    ),
    'vehicle': ResourceKind(
        'vehicle', 'vehicles', 'vehicles',
        ('name', 'license_plate', 'description', 'active')
    ),
    'equipment': EquipmentKind(
        'equipment', 'equipment', 'equipment',
        ('name', 'bu_code', 'category', 'quantity', 'serial_number',
         'status', 'location', 'notes', 'active')
    ),
}


def get_resource_kind(resource_type: str) -> ResourceKind:
    """
    Look up a resource kind.

    Raises:
        ReservationInputError: If the type is unknown
    """
    kind = RESOURCE_KINDS.get(resource_type)
    if kind is None:
        raise ReservationInputError(
            get_message('invalid_resource_type', resource_type=resource_type),
            code='invalid_resource_type',
            field='resource_type'
        )
    return kind


def get_kind_by_url_name(url_name: str) -> ResourceKind:
    """Resolve 'meeting-rooms' / 'vehicles' / 'equipment' to a kind (or None)."""
    for kind in RESOURCE_KINDS.values():
        if kind.url_name == url_name:
            return kind
    return None


# =============================================================================
# READ
# =============================================================================

def _with_type(row, resource_type: str) -> dict:
    resource = dict(row)
    resource['resource_type'] = resource_type
    return resource


def list_resources(resource_type: str, active_only: bool = False) -> list:
    """
    List resources of one kind.

    Args:
        resource_type: 'meeting_room', 'vehicle' or 'equipment'
        active_only: Only bookable resources (equipment must also be 'available')

    Returns:
        List of resource dicts, each tagged with 'resource_type'
    """
    kind = get_resource_kind(resource_type)
    db = get_db()
    cursor = db.cursor()

    query = f'SELECT * FROM {kind.table}'
    if active_only:
        query += ' WHERE active = 1'
        if resource_type == 'equipment':
            query += " AND status = 'available'"
    query += ' ORDER BY name'

    cursor.execute(query)
    return [_with_type(row, resource_type) for row in cursor.fetchall()]


def get_resource(resource_type: str, resource_id: int) -> dict:
    """
    Get a resource by type and ID.

    Returns:
        Resource dict or None if not found
    """
    kind = get_resource_kind(resource_type)
    db = get_db()
    cursor = db.cursor()
    cursor.execute(f'SELECT * FROM {kind.table} WHERE id = ?', (resource_id,))
    row = cursor.fetchone()
    return _with_type(row, resource_type) if row else None


# =============================================================================
# VALIDATION
# =============================================================================

def _license_plate_taken(license_plate: str, exclude_id: int = None) -> bool:
    db = get_db()
    cursor = db.cursor()
    query = 'SELECT id FROM vehicles WHERE license_plate = ?'
    params = [license_plate.strip()]
    if exclude_id:
        query += ' AND id != ?'
        params.append(exclude_id)
    cursor.execute(query, params)
    return cursor.fetchone() is not None


def validate_resource_fields(resource_type: str, fields: dict, partial: bool = False,
                             resource_id: int = None) -> tuple:
    """
    Validate resource fields before create/update.

    Args:
        resource_type: Resource type
        fields: Field values to validate
        partial: True for updates (only validate provided fields)
        resource_id: Resource being updated (excluded from uniqueness checks)

    Returns:
        Tuple of (is_valid, error_message)
    """
    from utils.validators import validate_license_plate, validate_positive_int

    get_resource_kind(resource_type)

    if not partial or 'name' in fields:
        if not (fields.get('name') or '').strip():
            return False, get_message('name_required')

    if resource_type == 'vehicle' and (not partial or 'license_plate' in fields):
        plate = fields.get('license_plate') or ''
        if not validate_license_plate(plate):
            return False, get_message('license_plate_required')
        if _license_plate_taken(plate, exclude_id=resource_id):
            return False, get_message('license_plate_exists')

    if resource_type == 'equipment':
        if 'quantity' in fields and not validate_positive_int(fields['quantity']):
            return False, get_message('invalid_quantity')
        if 'status' in fields and fields['status'] not in EQUIPMENT_STATUSES:
            return False, get_message('invalid_equipment_status', status=fields['status'])

    if resource_type == 'meeting_room' and fields.get('capacity') not in (None, ''):
        if not validate_positive_int(fields['capacity']):
            return False, get_message('invalid_value')

    return True, ''


def _clean_fields(kind: ResourceKind, fields: dict) -> dict:
    cleaned = {}
    for name in kind.fields:
        if name not in fields:
            continue
        value = fields[name]
        if isinstance(value, str):
            value = value.strip()
        if name in ('quantity', 'capacity') and value not in (None, ''):
            value = int(value)
        if name == 'active':
            value = 1 if value in (True, 1, '1', 'true') else 0
        cleaned[name] = value
    return cleaned


# =============================================================================
# CREATE / UPDATE / DELETE
# =============================================================================

def create_resource(resource_type: str, **fields) -> int:
    """
    Create a resource.

    Args:
        resource_type: Resource type
        **fields: Column values (see ResourceKind.fields)

    Returns:
        New resource ID

    Raises:
        ValueError: If validation fails
    """
    kind = get_resource_kind(resource_type)
    is_valid, error = validate_resource_fields(resource_type, fields)
    if not is_valid:
        raise ValueError(error)

    data = _clean_fields(kind, fields)
    columns = ', '.join(data.keys())
    placeholders = ', '.join('?' * len(data))

    db = get_db()
    cursor = db.cursor()
    cursor.execute(
        f'INSERT INTO {kind.table} ({columns}) VALUES ({placeholders})',
        list(data.values())
    )
    db.commit()

    logger.info(f'Created {resource_type} {cursor.lastrowid} ({data.get("name")})')
    return cursor.lastrowid


def _upcoming_reservations(resource_type: str, resource_id: int) -> list:
    """Active reservations on a resource that have not ended yet."""
    cursor = get_db().cursor()
    cursor.execute('''
        SELECT * FROM reservations
        WHERE resource_type = ? AND resource_id = ?
          AND status = 'active' AND end_time > ?
    ''', (resource_type, resource_id, format_datetime(get_now())))
    return [dict(row) for row in cursor.fetchall()]


def update_resource(resource_type: str, resource_id: int, **fields) -> bool:
    """
    Update resource fields.

    Runs under the database write lock. Equipment quantity cannot drop below
    the peak number of units booked by upcoming reservations.

    Args:
        resource_type: Resource type
        resource_id: Resource ID
        **fields: Fields to update

    Returns:
        True if updated successfully

    Raises:
        ValueError: If validation fails or the quantity is below booked units
    """
    from .availability import peak_booked_quantity

    kind = get_resource_kind(resource_type)

    with immediate_transaction() as cursor:
        is_valid, error = validate_resource_fields(
            resource_type, fields, partial=True, resource_id=resource_id
        )
        if not is_valid:
            raise ValueError(error)

        data = _clean_fields(kind, fields)
        if not data:
            return False

        if resource_type == 'equipment' and 'quantity' in data:
            booked = peak_booked_quantity(
                resource_type, resource_id, _upcoming_reservations(resource_type, resource_id)
            )
            if data['quantity'] < booked:
                raise ValueError(get_message('quantity_below_booked', booked=booked))

        updates = [f'{name} = ?' for name in data]
        updates.append('updated_at = CURRENT_TIMESTAMP')
        values = list(data.values()) + [resource_id]
        cursor.execute(f'UPDATE {kind.table} SET {", ".join(updates)} WHERE id = ?', values)

    return cursor.rowcount > 0


def delete_resource(resource_type: str, resource_id: int) -> bool:
    """
    Soft delete a resource (set active = 0).

    Past reservations keep pointing at the row, so it is never removed.

    Returns:
        True if deleted successfully

    Raises:
        ValueError: If the resource still has active reservations ending in the future
    """
    kind = get_resource_kind(resource_type)

    with immediate_transaction() as cursor:
        if _upcoming_reservations(resource_type, resource_id):
            raise ValueError(get_message('resource_has_reservations'))

        cursor.execute(f'''
            UPDATE {kind.table} SET active = 0, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (resource_id,))

    if cursor.rowcount:
        logger.info(f'Deactivated {resource_type} {resource_id}')
    return cursor.rowcount > 0
