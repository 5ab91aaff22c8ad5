__all__ = ["NotAuthorizedException", "AccessDenied", "ValidationError", "SomeItemsAreNotAvailable", "NotFoundError",
           "InvalidTransitionError", "ConflictError", "PersistenceError", "NumberOfRetriesExceeded"]


class NotAuthorizedException(Exception):
    LEVEL = 'warning'


# Generic Exceptions
class AccessDenied(Exception):
    LEVEL = 'warning'


# Validations exceptions
class ValidationError(Exception):
    LEVEL = 'warning'

    def __init__(self, message, field=None):
        super().__init__(message)
        self.field = field


class SomeItemsAreNotAvailable(ValidationError):
    pass


# Store exceptions
class NotFoundError(Exception):
    LEVEL = 'warning'


class ConflictError(Exception):
    LEVEL = 'warning'


class PersistenceError(Exception):
    LEVEL = 'error'


# DB Performance Exception
class NumberOfRetriesExceeded(PersistenceError):
    pass


# Order lifecycle exceptions
class InvalidTransitionError(Exception):
    LEVEL = 'warning'

    def __init__(self, current_status, requested_status, role, reason=None):
        self.current_status = current_status
        self.requested_status = requested_status
        self.role = role
        self.reason = reason
        message = f"Cannot move order from '{current_status}' to '{requested_status}' as {role}"
        if reason:
            message = f'{message}: {reason}'
        super().__init__(message)
