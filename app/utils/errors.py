"""
Domain errors raised by the task core.

Each carries the HTTP status and the human message used by the response
envelope; the handlers in main.py do the conversion.
"""
from typing import List, Optional


class TaskflowError(Exception):
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        self.message = message or self.default_message
        self.errors = errors or [self.message]
        super().__init__(self.message)


class ValidationFailure(TaskflowError):
    """One or more request rules were violated; all of them are listed."""
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, errors: List[str], message: Optional[str] = None):
        super().__init__(message or self.default_message, list(errors))


class NotFound(TaskflowError):
    """Missing, or outside the caller's scope. Callers cannot tell which."""
    status_code = 404
    default_message = "Task not found"


class DependencyNotFound(NotFound):
    """A referenced record (parent task, update, assignee) does not exist."""


class Forbidden(TaskflowError):
    status_code = 403
    default_message = "You do not have permission to perform this action"


class Conflict(TaskflowError):
    status_code = 409
    default_message = "Conflict with the current state of the task"


class InvalidTransition(TaskflowError):
    status_code = 400

    def __init__(self, from_status: str, to_status: str, message: Optional[str] = None):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message or f"Invalid status transition from {from_status} to {to_status}",
            [f"Cannot change status from {from_status} to {to_status}"],
        )


class DepartmentMismatch(TaskflowError):
    status_code = 400
    default_message = "Employee does not belong to the specified department"


class InvalidAssigneeRole(TaskflowError):
    status_code = 400
    default_message = "Can only assign tasks to HOD or Employee"


class Unauthorized(TaskflowError):
    status_code = 401
    default_message = "Authentication required. Please provide a token."
