"""Typed failures raised by the account, recovery and engagement services.

Each error carries the HTTP status and a short machine-readable code so the
API layer can render it without inspecting the message.
"""

from typing import Optional

from fastapi import status


class ServiceError(Exception):
    """Base class for user-presentable failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"
    default_detail: str = "Request failed"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field.capitalize()} is already in use")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["field"] = self.field
        return data


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "User not found"


class AlreadyVerifiedError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "already_verified"
    default_detail = "Your email is already verified"


class InvalidCodeError(ServiceError):
    code = "invalid_code"
    default_detail = "Invalid verification code"


class ExpiredError(ServiceError):
    code = "expired"
    default_detail = "Verification code has expired"


class InvalidCredentialsError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "invalid_credentials"
    default_detail = "Incorrect password"


class MismatchError(ServiceError):
    code = "mismatch"
    default_detail = "Passwords do not match"


class InvalidOrExpiredTokenError(ServiceError):
    code = "invalid_or_expired_token"
    default_detail = "Invalid or expired reset token"


class UnauthenticatedError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    default_detail = "Please log in or sign up first"


class TooManyRequestsError(ServiceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "too_many_requests"
    default_detail = "Too many requests, try again later"


class UnexpectedError(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "unexpected"
    default_detail = "An unexpected error occurred"
