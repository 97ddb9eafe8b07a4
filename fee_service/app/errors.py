from fastapi import status


class FeeServiceError(Exception):
    """Base for errors shown to the dashboard user as-is."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(FeeServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotAuthenticated(FeeServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED


class StudentNotFound(FeeServiceError):
    status_code = status.HTTP_404_NOT_FOUND
