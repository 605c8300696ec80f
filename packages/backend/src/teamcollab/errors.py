"""Service-layer exceptions.

Services raise these instead of HTTPException so they stay usable from the
CLI, the socket handlers and tests. main.py registers one handler that
turns any ServiceError into a JSON response with its status code.
"""


class ServiceError(Exception):
    """Base class. `status_code` is the HTTP status the API answers with."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequestError(ServiceError):
    status_code = 400


class PermissionDeniedError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class AuthenticationError(ServiceError):
    status_code = 401
