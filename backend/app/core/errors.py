"""Exceptions raised by the service layer and mapped to HTTP responses."""

from __future__ import annotations

from fastapi import status


class ServiceError(Exception):
    """Base class for client-visible failures raised outside the HTTP layer."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    category: str = "error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationFailed(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    category = "validation"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    category = "not_found"


class Conflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    category = "conflict"


class PermissionDenied(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    category = "forbidden"
