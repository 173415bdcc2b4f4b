"""
Centralized UI messages.
All user-facing text in one place for consistency.
"""

MESSAGES = {
    # Success messages
    'login_success': 'Welcome {name}',
    'logout_success': 'Logged out',
    'reservation_created': 'Reservation created',
    'reservations_created': '{created} of {total} reservations created',
    'reservation_updated': 'Reservation updated',
    'reservation_cancelled': 'Reservation cancelled',
    'resource_created': 'Resource created',
    'resource_updated': 'Resource updated',
    'resource_deleted': 'Resource deleted',

    # Auth / permission errors
    'invalid_credentials': 'Invalid username or password',
    'account_disabled': 'Your account has been disabled. Contact an administrator.',
    'login_required': 'Authentication required',
    'permission_denied': 'You do not have permission for this action',
    'bu_required': 'Only users assigned to a business unit can make reservations',
    'not_owner_edit': 'You can only edit your own reservations',
    'not_owner_cancel': 'You can only cancel your own reservations',

    # Booking input errors
    'resource_required': 'Please select a resource',
    'resource_not_found': 'Resource not found',
    'invalid_resource_type': 'Unknown resource type: {resource_type}',
    'title_required': 'Please enter a title',
    'time_required': 'Please enter start and end times',
    'invalid_time': 'Invalid date/time: {value}',
    'invalid_time_range': 'End time must be after start time',
    'week_days_required': 'Select at least one weekday to repeat on',
    'invalid_quantity': 'Quantity must be a whole number of at least 1',
    'invalid_recurrence': 'Invalid recurrence settings: {detail}',

    # Capacity / state errors
    'capacity_exceeded': 'Only {available} of {requested} requested units are available for this time',
    'resource_unavailable': 'This resource is not available for booking',
    'availability_changed': 'Availability changed while booking, please retry',
    'reservation_not_found': 'Reservation not found',
    'already_cancelled': 'Reservation is already cancelled',

    # Resource management errors
    'name_required': 'Name is required',
    'license_plate_required': 'License plate is required',
    'license_plate_exists': 'A vehicle with this license plate already exists',
    'invalid_equipment_status': 'Invalid equipment status: {status}',
    'resource_has_reservations': 'Cannot delete a resource with upcoming active reservations',
    'quantity_below_booked': 'Quantity cannot be lower than the {booked} unit(s) already booked for upcoming reservations',
    'equipment_selection_required': 'No equipment selected',

    # Generic
    'field_required': 'This field is required',
    'invalid_value': 'Invalid value',
    'not_found': 'Not found',
    'method_not_allowed': 'Method not allowed',
    'server_error': 'Internal server error',

    # Resource types
    'resource_meeting_room': 'Meeting room',
    'resource_vehicle': 'Vehicle',
    'resource_equipment': 'Equipment',

    # Reservation statuses
    'status_active': 'Active',
    'status_cancelled': 'Cancelled',
}


def get_message(key: str, **kwargs) -> str:
    """
    Get message with optional formatting.

    Args:
        key: Message key
        **kwargs: Format parameters

    Returns:
        Formatted message or key if not found
    """
    message = MESSAGES.get(key, key)
    if kwargs:
        return message.format(**kwargs)
    return message
