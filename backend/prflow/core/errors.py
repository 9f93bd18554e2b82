"""Typed workflow errors.

Services raise these; the API layer maps each one to an HTTP status so the
caller gets a specific reason instead of a generic 500.
"""
from fastapi import status


class WorkflowError(Exception):
    """Base class for every rejection the workflow can hand back to a caller."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(WorkflowError):
    """Missing approval matrix or first approver for a requester."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedActionError(WorkflowError):
    """Acting user is neither the current approver nor an escalated alternate."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(WorkflowError):
    """Request is not in a state that allows the attempted action.

    Also raised to the losing side of a race between two approvers.
    """

    status_code = status.HTTP_409_CONFLICT


class WorkflowValidationError(WorkflowError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
