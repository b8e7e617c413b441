# errors.py


class BookingError(Exception):
    """Base class for every error the booking core reports to its caller.

    Carries a machine-readable ``kind``, a human message and any structured
    context fields (quantities, hold timing, offending field) that the route
    layer passes back to the client.
    """

    kind = "booking_error"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind, **self.context}


class ValidationError(BookingError):
    """Malformed, missing or out-of-range input."""
    kind = "validation_error"


class NotFoundError(BookingError):
    kind = "not_found"


class ConflictError(BookingError):
    """The user already holds this resource/date/slot."""
    kind = "conflict"


class CapacityError(BookingError):
    kind = "capacity_exceeded"


class RateLimitError(BookingError):
    kind = "rate_limited"


class StateError(BookingError):
    """Confirm without a matching active hold."""
    kind = "invalid_state"
