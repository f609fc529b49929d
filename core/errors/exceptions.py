from fastapi import status


class GenieLearnError(Exception):
    """Base error. `message` is safe to show to the client."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GenieLearnError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(GenieLearnError):
    status_code = status.HTTP_401_UNAUTHORIZED

    # "No cookie" and "expired token" look the same to the caller
    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class ForbiddenError(GenieLearnError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(GenieLearnError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(GenieLearnError):
    status_code = status.HTTP_400_BAD_REQUEST


class UpstreamError(GenieLearnError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
