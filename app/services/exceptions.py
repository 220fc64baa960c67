"""
Custom exceptions for the scheduling and attendance services.

Every hard failure carries an ErrorKind so the API layer can translate it
to an HTTP status without inspecting messages. Soft schedule conflicts are
never raised from batch operations; they are returned as data.
"""

from enum import Enum
from typing import Any, List, Optional


class ErrorKind(str, Enum):
    not_found = "not_found"
    validation = "validation"
    conflict = "conflict"
    in_progress = "in_progress"
    upstream = "upstream"


class ServiceError(Exception):
    """Base exception for service layer errors."""

    kind: ErrorKind = ErrorKind.validation

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(ServiceError):
    """Raised when a requested resource is not found."""

    kind = ErrorKind.not_found

    def __init__(self, resource: str, identifier: Any):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class ValidationError(ServiceError):
    """Raised when input violates a business rule."""

    kind = ErrorKind.validation

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class ScheduleConflictError(ServiceError):
    """Raised by single-schedule operations when the validator reports a conflict."""

    kind = ErrorKind.conflict

    def __init__(self, message: str, conflicts: Optional[List[str]] = None):
        self.conflicts = conflicts or [message]
        super().__init__(message)


class RequestInProgressError(ServiceError):
    """Raised when a duplicate webhook delivery arrives while the first is still processing."""

    kind = ErrorKind.in_progress

    def __init__(self, request_id: str, retry_after: int = 1):
        self.request_id = request_id
        self.retry_after = retry_after
        super().__init__(f"Request {request_id} is still being processed, retry later")


class UpstreamServiceError(ServiceError):
    """Raised when an out-of-process collaborator fails or times out."""

    kind = ErrorKind.upstream

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")
