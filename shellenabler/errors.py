"""Exceptions raised while talking to a router."""

from typing import Optional


class RouterError(Exception):
    """Base class for every failure surfaced by the shell enabler."""


class NetworkError(RouterError):
    """Connection, DNS or timeout failure on the management API."""


class ProtocolError(RouterError):
    """The router answered with something we could not parse."""


class AuthError(RouterError):
    """Login rejected by the router (non-zero login code)."""

    def __init__(self, code: int, message: str = ""):
        self.code = code
        self.message = message
        super().__init__(f"Login failed (code {code}): {message or 'no message'}")


class ScheduleError(RouterError):
    """The smart controller refused to store a scene task."""

    def __init__(self, code: int, message: str = ""):
        self.code = code
        self.message = message
        super().__init__(f"Scheduling task failed (code {code}): {message or 'no message'}")


class TriggerError(RouterError):
    """The smart controller refused to fire a scheduled scene task."""

    def __init__(self, code: int, message: str = ""):
        self.code = code
        self.message = message
        super().__init__(f"Triggering task failed (code {code}): {message or 'no message'}")


class UnsupportedModelError(RouterError):
    """No client implementation exists for the requested model."""

    def __init__(self, model: str, supported: Optional[list] = None):
        self.model = model
        self.supported = supported or []
        text = f"Unsupported router model: {model}"
        if self.supported:
            text += f" (supported: {', '.join(self.supported)})"
        super().__init__(text)


class UnsupportedOperationError(RouterError):
    """The client for this model does not implement the operation."""

    def __init__(self, model: str, operation: str):
        self.model = model
        self.operation = operation
        super().__init__(f"Operation '{operation}' is not supported on {model}")


class EmptyInputError(RouterError):
    """A required input (e.g. the serial number) was empty."""


class StepFailedError(RouterError):
    """One step of a multi-step shell toggle failed; remaining steps were skipped."""

    def __init__(self, index: int, total: int, name: str, cause: Exception):
        self.index = index
        self.total = total
        self.name = name
        self.cause = cause
        super().__init__(f"Step {index}/{total} '{name}' failed: {cause}")
