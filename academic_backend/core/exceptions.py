from typing import Any, Dict, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    error_code = "service_error"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "error_code": self.error_code, **self.details}


class ValidationError(ServiceError):
    """Input is well-formed but violates a scheduling rule (e.g. end before start)."""

    error_code = "validation_error"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class NotFoundError(ServiceError):
    error_code = "not_found"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class UnavailableError(ServiceError):
    """Referenced entity exists but cannot take new assignments."""

    error_code = "unavailable"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class ConflictError(ServiceError):
    """The proposed time window collides with an existing active assignment."""

    error_code = "schedule_conflict"

    def __init__(self, message: str, dimension: str, conflict: Dict[str, Any]) -> None:
        super().__init__(
            message,
            status.HTTP_409_CONFLICT,
            details={"dimension": dimension, "conflict": conflict},
        )
        self.dimension = dimension
        self.conflict = conflict


class StorageError(ServiceError):
    error_code = "storage_error"

    def __init__(self, message: str = "Storage is temporarily unavailable") -> None:
        super().__init__(message, status.HTTP_503_SERVICE_UNAVAILABLE)
