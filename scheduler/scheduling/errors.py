"""Error kinds raised by the scheduling engine.

Each error carries the HTTP status code the route layer reports it with, so handlers can
translate any ``SchedulingError`` into an ``HTTPException`` without a lookup table.
"""


class SchedulingError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(SchedulingError):
    """Missing or malformed field, or a disallowed duration."""

    status_code = 400


class Unauthorized(SchedulingError):
    status_code = 401


class Forbidden(SchedulingError):
    status_code = 403


class NotFound(SchedulingError):
    status_code = 404


class InvalidTransition(SchedulingError):
    """Event not legal from the current status, or a required payload field is missing."""

    status_code = 400

    def __init__(self, detail: str, current_status: str | None = None, event: str | None = None):
        super().__init__(detail)
        self.current_status = current_status
        self.event = event


class SlotConflict(SchedulingError):
    status_code = 409
