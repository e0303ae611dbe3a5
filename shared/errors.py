"""Error taxonomy shared by the services and the HTTP layer."""


class WorkflowError(Exception):
    """Base class for errors raised by the access-control and workflow core.

    Attributes:
        code: Stable machine-readable error code
        status_code: HTTP status the API layer renders the error with
    """
    code = 'INTERNAL_ERROR'
    status_code = 500

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self):
        result = {'error': self.message, 'code': self.code}
        if self.details:
            result['details'] = self.details
        return result


class ValidationError(WorkflowError):
    """Raised when input validation fails."""
    code = 'VALIDATION_ERROR'
    status_code = 400


class AuthorizationError(WorkflowError):
    """Raised when a permission guard denies an action."""
    code = 'AUTHORIZATION_ERROR'
    status_code = 403


class NotFoundError(WorkflowError):
    code = 'NOT_FOUND'
    status_code = 404


class DuplicateError(WorkflowError):
    """Raised when an active binding already exists for the same pair."""
    code = 'DUPLICATE_ERROR'
    status_code = 409


class InternalError(WorkflowError):
    """Unexpected store failure. The message is never shown to API clients."""
    code = 'INTERNAL_ERROR'
    status_code = 500
