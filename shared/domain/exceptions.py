"""
Domain Errors

One hierarchy for every rejected operation. Each error carries a
human-readable message (shown to API clients as is) and a stable code.
The API layer maps the families to HTTP statuses:

- EntityNotFoundError -> 404
- DomainValidationError -> 400
- IllegalStateError and subclasses -> 409
- AuthorizationError -> 403
"""


class DomainError(Exception):
    """Base class for all domain errors"""

    code = 'domain_error'

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def __str__(self):
        return self.message


class EntityNotFoundError(DomainError):
    code = 'not_found'


class DomainValidationError(DomainError):
    code = 'validation_error'


class AuthorizationError(DomainError):
    code = 'forbidden'


class IllegalStateError(DomainError):
    code = 'illegal_state'


class InvalidTransitionError(IllegalStateError):
    code = 'invalid_transition'


class ScheduleConflictError(IllegalStateError):
    code = 'schedule_conflict'


class DuplicateInvoiceError(IllegalStateError):
    code = 'duplicate_invoice'


class ConcurrentModificationError(IllegalStateError):
    """Raised when an aggregate was changed by someone else since it was loaded"""

    code = 'concurrent_modification'
