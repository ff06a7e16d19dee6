class PortalError(Exception):
    """Base error for request handlers. Rendered as ``{"error": message}``."""
    status = 400

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class ValidationFailed(PortalError):
    status = 400


class Unauthorized(PortalError):
    status = 401


class Forbidden(PortalError):
    status = 403


class NotFound(PortalError):
    status = 404


class RateLimited(PortalError):
    status = 429


class EncryptionError(Exception):
    """Raised when the field encryption key is not configured."""
