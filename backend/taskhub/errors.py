from __future__ import annotations
"""Domain error taxonomy.

Each error is a werkzeug HTTPException so the app-wide handler in
`taskhub/__init__.py` renders it with the standard JSON error shape. Services
raise these outside a request too (scripts, tests); nothing here needs an
application context.

    PermissionDenied   403   (NotAssignee)
    InvalidTransition  400   (TaskNotRejectable)
    InvalidInput       400   (InvalidReason)
    NotFound           404
    Conflict           409   (AlreadyCompleted)
"""
from typing import Any, Dict, Optional
from werkzeug import exceptions as http


class DomainError(http.HTTPException):
    error_code = 'DOMAIN_ERROR'

    def __init__(self, detail: Optional[str] = None, *, resource: Optional[str] = None,
                 action: Optional[str] = None, record_id: Any = None):
        super().__init__(description=detail or self.description)
        self.resource = resource
        self.action = action
        self.record_id = record_id

    def context(self) -> Dict[str, Any]:
        return {
            'resource': self.resource,
            'action': self.action,
            'record_id': self.record_id,
        }


class PermissionDenied(DomainError):
    code = 403
    name = 'Forbidden'
    error_code = 'PERMISSION_DENIED'
    description = 'Permission denied'


class NotAssignee(PermissionDenied):
    error_code = 'NOT_ASSIGNEE'
    description = 'Only the assignee may reject this task'


class InvalidTransition(DomainError):
    code = 400
    name = 'Bad Request'
    error_code = 'INVALID_TRANSITION'
    description = 'Invalid status transition'


class TaskNotRejectable(InvalidTransition):
    error_code = 'TASK_NOT_REJECTABLE'
    description = 'Completed or cancelled tasks cannot be rejected'


class InvalidInput(DomainError):
    code = 400
    name = 'Bad Request'
    error_code = 'INVALID_INPUT'
    description = 'Invalid input'


class InvalidReason(InvalidInput):
    error_code = 'INVALID_REASON'
    description = 'Rejection reason must be at least 10 characters'


class NotFound(DomainError):
    code = 404
    name = 'Not Found'
    error_code = 'NOT_FOUND'
    description = 'Record not found'


class Conflict(DomainError):
    code = 409
    name = 'Conflict'
    error_code = 'CONFLICT'
    description = 'Record changed concurrently'


class AlreadyCompleted(Conflict):
    error_code = 'ALREADY_COMPLETED'
    description = 'Record is already completed'


__all__ = [
    'DomainError', 'PermissionDenied', 'NotAssignee', 'InvalidTransition', 'TaskNotRejectable',
    'InvalidInput', 'InvalidReason', 'NotFound', 'Conflict', 'AlreadyCompleted',
]
