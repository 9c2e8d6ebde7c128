"""
Domain errors raised by the portal services.

Routes translate these into HTTP responses; anything else becomes a generic
500 in the app-wide handler.
"""


class PortalError(Exception):
    """Base class for errors with a user-facing message."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    status_code = 400


class AuthenticationError(PortalError):
    status_code = 401


class PermissionDeniedError(PortalError):
    status_code = 403


class NotFoundError(PortalError):
    status_code = 404


class DownloadNotAllowedError(PortalError):
    """The quota check refused the download (unverified, no profile, or limit hit)."""

    status_code = 429
