"""Error taxonomy shared by the engine and the HTTP layer.

Each error carries the HTTP status it maps to; the API layer turns them into
JSON responses. ``UpstreamUnavailable`` is raised by collaborator adapters and
is always recovered before it reaches a caller.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class ValidationError(RelayError):
    status_code = 400

    def __init__(self, field: str, reason: str):
        super().__init__(f"{field}: {reason}")
        self.field = field


class Unauthorized(RelayError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class CodeNotFound(Unauthorized):
    def __init__(self, message: str = "No pending code for this identity"):
        super().__init__(message)


class CodeExpired(Unauthorized):
    def __init__(self, message: str = "Code expired"):
        super().__init__(message)


class CodeMismatch(Unauthorized):
    def __init__(self, message: str = "Invalid code"):
        super().__init__(message)


class SessionNotFound(Unauthorized):
    def __init__(self, message: str = "Session not found"):
        super().__init__(message)


class SessionExpired(Unauthorized):
    def __init__(self, message: str = "Session expired"):
        super().__init__(message)


class Forbidden(RelayError):
    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFound(RelayError):
    status_code = 404


class UpstreamUnavailable(RelayError):
    status_code = 502


class InternalError(RelayError):
    status_code = 500
