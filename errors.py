"""
Error taxonomy for the store.

Every error carries the HTTP status it maps to; the app registers a single
handler that turns a StoreError into ``{"detail": message}``.
"""


class StoreError(Exception):
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


class NotFoundError(StoreError):
    status_code = 404


class UnauthenticatedError(StoreError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class UnauthorizedError(StoreError):
    status_code = 403


class InvalidRequestError(StoreError):
    status_code = 400


class UpstreamServiceError(StoreError):
    """The AI provider failed. Always recovered locally, never sent to clients."""

    status_code = 502


class InternalError(StoreError):
    status_code = 500
