"""
Reservation error taxonomy.

Every error raised by the booking layer is a ValueError subclass carrying a
machine-readable ``code``, the HTTP ``status`` a route should answer with,
and optional context fields. Routes turn them into JSON with
``utils.api_response.api_exception``.

    ReservationError
    ├── ReservationInputError          400  bad or missing input
    ├── ResourceNotFoundError          404  resource id does not resolve
    ├── CapacityExceededError          409  not enough free units
    │   └── ResourceUnavailableError   409  inactive / maintenance / lost
    ├── ConcurrentBookingError         409  lost the race, retry
    ├── ReservationNotFoundError       404
    ├── ReservationAlreadyCancelledError 409
    └── ReservationPermissionError     403
"""


class ReservationError(ValueError):
    """Base class for booking errors."""

    code = 'reservation_error'
    status = 400
    retryable = False

    def __init__(self, message: str, code: str = None, **context):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context

    def to_dict(self) -> dict:
        """Serialize for API responses and batch outcome reports."""
        data = {'code': self.code, 'error': self.message}
        if self.retryable:
            data['retryable'] = True
        data.update(self.context)
        return data


class ReservationInputError(ReservationError):
    """Missing or malformed booking input; fixable by correcting the request."""

    code = 'invalid_input'

    def __init__(self, message: str, code: str = None, field: str = None, **context):
        if field:
            context['field'] = field
        super().__init__(message, code=code, **context)
        self.field = field


class ResourceNotFoundError(ReservationError):
    code = 'resource_not_found'
    status = 404


class CapacityExceededError(ReservationError):
    """Requested quantity exceeds what is free for the window."""

    code = 'capacity_exceeded'
    status = 409

    def __init__(self, message: str, available_quantity: int = 0,
                 requested_quantity: int = 1, code: str = None, **context):
        super().__init__(
            message,
            code=code,
            available_quantity=available_quantity,
            requested_quantity=requested_quantity,
            **context
        )
        self.available_quantity = available_quantity
        self.requested_quantity = requested_quantity


class ResourceUnavailableError(CapacityExceededError):
    code = 'resource_unavailable'


class ConcurrentBookingError(ReservationError):
    """Availability changed between the caller's check and the commit."""

    code = 'availability_changed'
    status = 409
    retryable = True


class ReservationNotFoundError(ReservationError):
    code = 'reservation_not_found'
    status = 404


class ReservationAlreadyCancelledError(ReservationError):
    code = 'already_cancelled'
    status = 409


class ReservationPermissionError(ReservationError):
    code = 'forbidden'
    status = 403
