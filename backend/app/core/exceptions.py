"""Error taxonomy shared by services and API routes.

Services raise these; ``app.main`` maps them onto JSON responses of the form
``{"error": message}`` with the class's status code.
"""
from typing import Optional


class CrossPostError(Exception):
    """Base class for expected, user-reportable failures"""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(CrossPostError):
    """Required vendor, storage or encryption configuration is missing"""
    status_code = 500


class UnauthorizedError(CrossPostError):
    status_code = 401


class ValidationError(CrossPostError):
    status_code = 400


class NotFoundError(CrossPostError):
    status_code = 404


class CsrfError(CrossPostError):
    """OAuth state token rejected during a callback.

    ``code`` is the redirect error flag: invalid_state, state_expired or unauthorized.
    """
    status_code = 400

    def __init__(self, code: str, message: Optional[str] = None):
        super().__init__(message or code)
        self.code = code


class AccountNotFoundError(CrossPostError):
    """Vendor account (channel, user, business account) missing during connect"""
    status_code = 400


class StorageError(CrossPostError):
    status_code = 500


class VendorError(CrossPostError):
    """Non-2xx or malformed response from a platform API"""
    status_code = 502

    def __init__(self, platform: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{platform}: {message}", status_code)
        self.platform = platform
        self.detail = message


class PublishTimeoutError(VendorError):
    status_code = 504
