"""Error taxonomy of the evaluation service.

Every error carries the HTTP status code the API layer answers with, so routers
can translate any ``EvaluationServiceError`` without knowing the concrete type.
"""

from __future__ import annotations


class EvaluationServiceError(Exception):
    """Base class for all errors raised by the evaluation service."""

    status_code = 500
    default_message = "internal error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


# Validation errors: rejected before any side effect


class InvalidArgumentError(EvaluationServiceError):
    status_code = 400
    default_message = "invalid argument"


class EmptyRequestError(InvalidArgumentError):
    default_message = "empty request"


class CatalogIdMissingError(InvalidArgumentError):
    default_message = "catalog id is missing"


class CategoryNameMissingError(InvalidArgumentError):
    default_message = "category name is missing"


class ControlIdMissingError(InvalidArgumentError):
    default_message = "control id is missing"


# Authorization


class PermissionDeniedError(EvaluationServiceError):
    status_code = 403
    default_message = "access denied"


# Not-found and state errors


class NotFoundError(EvaluationServiceError):
    status_code = 404
    default_message = "not found"


class ControlNotAvailableError(NotFoundError):
    default_message = "control not available"


class JobNotRunningError(NotFoundError):
    default_message = "job not running"


class AlreadyExistsError(EvaluationServiceError):
    status_code = 409
    default_message = "already exists"


class SchedulingError(EvaluationServiceError):
    default_message = "evaluation cannot be scheduled"


# Upstream / transport


class OrchestratorError(EvaluationServiceError):
    status_code = 502
    default_message = "orchestrator request failed"


class OrchestratorUnavailableError(OrchestratorError):
    status_code = 503
    default_message = "could not connect to orchestrator service"
