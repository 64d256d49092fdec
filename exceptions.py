"""
Exceptions raised by the SkyNest web client

Route handlers catch ``ApiError`` to flash the backend's message.
``AuthenticationError`` and ``BackendUnavailable`` are siblings of it, not
subclasses, so they reach the app-level handlers.
"""


class SkyNestError(Exception):

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}

    def __str__(self):
        if self.status_code:
            return f'{self.message} (HTTP {self.status_code})'
        return self.message


class ApiError(SkyNestError):
    """Backend answered with a non-2xx status"""


class AuthenticationError(SkyNestError):
    """Session token expired or rejected by the backend (HTTP 401)"""


class BackendUnavailable(SkyNestError):
    """Backend could not be reached at all"""


class WizardError(ValueError):
    """Invalid booking wizard transition or input"""
