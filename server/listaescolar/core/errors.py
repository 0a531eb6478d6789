"""Errors raised by services and turned into JSON responses by the app."""


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(AppError):
    """An item, store or list does not exist."""

    status_code = 404


class InvalidState(AppError):
    """The entity exists but cannot be used, e.g. an inactive store."""

    status_code = 400


class InvalidRequest(AppError):
    """A required parameter is missing or malformed."""

    status_code = 400


class GeocodeNotFound(AppError):
    status_code = 404


class ServiceError(AppError):
    """An upstream service failed or something unexpected happened."""

    status_code = 500
