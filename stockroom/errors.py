"""
Error Taxonomy
Exceptions raised by the data store and the lifecycle services.
Each carries the HTTP status the JSON error handler responds with.
"""


class StockroomError(Exception):
    """Base class for every failure surfaced to the caller"""
    status_code = 500

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self):
        payload = {
            'success': False,
            'error': type(self).__name__,
            'message': self.message
        }
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(StockroomError):
    """Required field missing or invalid; raised before any I/O"""
    status_code = 400


class InvalidTransitionError(ValidationError):
    """Action not allowed from the entity's current state"""


class PermissionDeniedError(StockroomError):
    status_code = 403


class NotFoundError(StockroomError):
    """Referenced record does not exist"""
    status_code = 404


class ConflictError(StockroomError):
    """Duplicate identifier on create"""
    status_code = 409


class SchemaMismatchError(StockroomError):
    """Write rejected because the table does not have one of the given columns"""
    status_code = 422
    code = '42703'

    def __init__(self, message, column=None, **kwargs):
        super().__init__(message, **kwargs)
        self.column = column
        if column:
            self.details.setdefault('column', column)


class TransportError(StockroomError):
    """Database unreachable or the connection failed mid-call"""
    status_code = 503

    def __init__(self, message='The data store is unavailable. Please try again.', **kwargs):
        super().__init__(message, **kwargs)
