# app/core/exceptions.py

"""
Workflow error taxonomy.

All errors subclass ValueError so existing `except ValueError` call sites keep
working; the HTTP layer maps each subtype to a status code in app/main.py.
"""


class WorkflowError(ValueError):
    status_code = 400

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class NotFoundError(WorkflowError):
    status_code = 404


class ForbiddenError(NotFoundError):
    # Rendered as 404 so existence is not leaked across tenants/mentors
    status_code = 404


class ConflictError(WorkflowError):
    status_code = 409


class ValidationFailed(WorkflowError):
    status_code = 422


class UnavailableError(WorkflowError):
    """A best-effort side channel (push, socket) failed."""
    status_code = 503


class RetryableError(WorkflowError):
    """Queue job failure that the broker should retry with backoff."""
    status_code = 500
