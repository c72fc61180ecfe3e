"""Domain error taxonomy shared by the scheduling core."""


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling core."""


class ValidationError(SchedulingError):
    """Rejected input or state; nothing was modified."""


class InvalidScheduleError(ValidationError):
    pass


class InvalidTransitionError(ValidationError):
    def __init__(self, status: str, action: str, reason: str | None = None):
        self.status = status
        self.action = action
        message = f"Cannot apply '{action}' to an appointment in status '{status}'."
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)


class NotFoundError(SchedulingError):
    pass


class ConflictError(SchedulingError):
    """A conditional write lost a race against a concurrent reservation."""


class TransientDeliveryError(SchedulingError):
    pass


class PermanentTokenError(SchedulingError):
    pass
