"""Error kinds raised by the booking core.

Each error carries a single human-readable message that is safe to show to
the person at the terminal or API client; raw store text never goes there.
"""


class BookingError(Exception):
    status_code = 400
    default_message = "Request could not be completed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(BookingError):
    status_code = 404
    default_message = "Record not found"


class InvalidInput(BookingError):
    status_code = 422
    default_message = "Invalid input"


class Conflict(BookingError):
    status_code = 409
    default_message = "Doctor is not available on this date"


class Forbidden(BookingError):
    status_code = 403
    default_message = "You can only cancel your own appointments"


class InvalidState(BookingError):
    status_code = 409
    default_message = "Cannot cancel past appointments"


class StoreError(BookingError):
    """Persistence failure. Transient; retrying is up to the caller."""
    status_code = 503
    default_message = "Appointment records are temporarily unavailable"
