"""Error types raised by the service layer.

Each carries the HTTP status the API answers with; the app-level error
handler in ``taskloop.create_app`` turns them into ``{"error": ...}``.
"""


class TaskLoopError(Exception):
    status_code = 400

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {'error': self.message}
        payload.update(self.details)
        return payload


class ValidationFailed(TaskLoopError):
    status_code = 400


class AuthenticationRequired(TaskLoopError):
    status_code = 401


class PermissionDenied(TaskLoopError):
    status_code = 403


class NotFound(TaskLoopError):
    status_code = 404


class Conflict(TaskLoopError):
    """A business rule rejected the action (duplicate, limit reached, wrong state)."""
    status_code = 409


class StorageUnavailable(TaskLoopError):
    status_code = 503
