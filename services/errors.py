"""
Service Errors

HTTP-status-tagged exceptions raised by the service layer. API routes
render them as {"error": message}; page routes render the error page.
"""


class HttpError(Exception):
    """Base error carrying the HTTP status it should be surfaced with."""
    status = 500

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class ValidationError(HttpError):
    status = 400


class UpstreamError(HttpError):
    """Database or storage call failed; the message is passed through."""
    status = 400


class AuthError(HttpError):
    status = 401


class ForbiddenError(HttpError):
    status = 403


class NotFoundError(HttpError):
    status = 404


class ConflictError(HttpError):
    status = 409


class ServiceUnavailableError(HttpError):
    """A required collaborator (auth provider, storage) is not configured."""
    status = 503
