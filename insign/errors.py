"""
Domain exceptions raised by services and repositories.

The API layer registers a handler that turns any `ServiceError` into a JSON
response of the form ``{"detail": message}`` with the carried status code.
"""


class ServiceError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class WorkflowError(ServiceError):
    """Signature workflow rule violated (inactive request, wrong turn, ...)."""


class StorageQuotaExceeded(ServiceError):
    status_code = 413

    def __init__(self, message: str = "Storage quota exceeded"):
        super().__init__(message)
