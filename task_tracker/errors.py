"""
Error kinds raised by the stores and services.

The HTTP layer maps each kind to a status code (see main.py); the scheduler
catches PersistenceError and DeliveryError, logs them and moves on.
"""


class TaskTrackerError(Exception):
    """Base class for all application errors."""

    status_code = 500

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail or self.__class__.__name__


class Unauthenticated(TaskTrackerError):
    """Missing or invalid credentials, or an identity that cannot be resolved."""

    status_code = 401


class InvalidSignature(Unauthenticated):
    """A session token whose signature or structure does not check out."""


class InvalidInput(TaskTrackerError):
    status_code = 400


class InvalidIdentifier(TaskTrackerError):
    """A task identifier that is not structurally valid."""

    status_code = 400


class NotFound(TaskTrackerError):
    status_code = 404


class PersistenceError(TaskTrackerError):
    """The document store failed or rejected a write."""

    status_code = 500


class DeliveryError(TaskTrackerError):
    """The mail transport could not deliver a message."""

    status_code = 500
