"""Exceptions raised by the scheduling core."""


class SchedulingError(Exception):
    """Base class for scheduling failures."""


class InvalidSlot(SchedulingError, ValueError):
    """A slot label that cannot be parsed or is not offered by the clinic."""


class StorageUnavailable(SchedulingError):
    """The appointment store failed or timed out. Safe to retry."""

    retryable = True


class PaymentGatewayError(SchedulingError):
    """The payment gateway rejected a request or could not be reached."""


class InvalidTransition(SchedulingError):
    def __init__(self, current: str, requested: str):
        super().__init__(f'Cannot move an appointment from {current!r} to {requested!r}.')
        self.current = current
        self.requested = requested
