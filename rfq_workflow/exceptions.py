"""Exception hierarchy for the RFQ workflow core and its HTTP surface.

Every failure inside a workflow view resolves into one of three kinds:
``FetchError`` (catalog or bid listing failed), ``ValidationError`` (a local
guard is not satisfied) or ``SubmissionError`` (the backend rejected the
transition or the transport failed).
"""

from __future__ import annotations


class AppException(Exception):
    """Base exception for all application errors.

    Subclasses set ``code`` and ``status_code`` at the class level; callers
    provide ``message`` and an optional ``details`` list.
    """

    code: str = "APP_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: list[dict] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class NotFoundException(AppException):
    code = "NOT_FOUND"
    status_code = 404


class WorkflowError(AppException):
    code = "WORKFLOW_ERROR"
    status_code = 500


class FetchError(WorkflowError):
    """Reading the transition catalog, the bid snapshot or the RFQ failed."""

    code = "FETCH_FAILED"
    status_code = 502


class ValidationError(WorkflowError):
    """A guard for the selected target status is not satisfied."""

    code = "VALIDATION_ERROR"
    status_code = 422


class SubmissionError(WorkflowError):
    """The backend rejected the transition or the request did not complete."""

    code = "SUBMISSION_FAILED"
    status_code = 422

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, details)
        if status_code is not None:
            self.status_code = status_code


class RequestAbortedError(SubmissionError):
    code = "REQUEST_ABORTED"
    status_code = 504


class StaleTransitionError(SubmissionError):
    """The RFQ changed on the backend between catalog fetch and submit."""

    code = "STALE_STATE"
    status_code = 409


class SubmissionInProgressError(SubmissionError):
    code = "SUBMISSION_IN_PROGRESS"
    status_code = 409
