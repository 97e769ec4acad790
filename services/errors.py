"""Domain error taxonomy.

Every error carries an HTTP status and a message that is safe to show to the
operator. Business-rule failures are raised by the services and turned into
``{"success": false, "error": ...}`` responses by the routes.
"""

from __future__ import annotations


class ServiceError(Exception):
    status_code = 400
    default_message = 'Request failed'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {'success': False, 'error': self.message}


class ValidationError(ServiceError):
    status_code = 400
    default_message = 'Invalid request'


class InvalidCodeError(ValidationError):
    default_message = 'Invalid code'


class AuthError(ServiceError):
    status_code = 401
    default_message = 'Authentication required'


class ForbiddenError(ServiceError):
    status_code = 403
    default_message = 'Insufficient permissions'


class NotFoundError(ServiceError):
    status_code = 404
    default_message = 'Not found'


class ConflictError(ServiceError):
    status_code = 409
    default_message = 'Conflict'


class RateLimitError(ServiceError):
    status_code = 429
    default_message = 'Too many attempts. Please try again later'


class StateError(ServiceError):
    status_code = 400
    default_message = 'Operation not allowed in the current state'


class LockedError(StateError):
    default_message = 'Participant is locked'


class PrizeInactiveError(StateError):
    default_message = 'Prize is not active'


class InsufficientPointsError(StateError):
    default_message = 'Insufficient active points'


class OutOfStockError(StateError):
    default_message = 'Prize out of stock'


class SessionNotFoundError(StateError):
    status_code = 404
    default_message = 'Session expired or not found'


class InvalidTransitionError(StateError):
    default_message = 'Verification steps must be completed in order'


class InfrastructureError(ServiceError):
    status_code = 503
    default_message = 'Service temporarily unavailable'


class NotificationError(Exception):
    """Delivery channel failure. Never surfaced to API callers directly."""
