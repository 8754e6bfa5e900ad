# fleet/errors.py


class SimulationError(Exception):
    pass


class NotFound(SimulationError):
    """Unknown machine (or tank) id."""


class InvalidState(SimulationError):
    """Operation not allowed in the session's current state."""


class DeliveryFailure(SimulationError):
    """Non-2xx response or transport error while delivering a payload."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status
