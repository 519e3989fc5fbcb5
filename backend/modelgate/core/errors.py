"""
Gateway error taxonomy.

Only the four caller-facing errors ever reach the HTTP layer; each carries the
status code it is rendered with. TranscodeSkip is internal to the streaming
transcoder and ToolCallParseError is raised by the caller-side parse helper.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base exception for caller-facing gateway errors."""

    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(GatewayError):
    """A required request field is missing or malformed. Never retried."""

    status_code = 400


class UnknownProvider(GatewayError):
    """The requested logical model has no registry entry."""

    status_code = 404

    def __init__(self, message: str, model: str | None = None):
        super().__init__(message)
        self.model = model


class MissingCredential(GatewayError):
    """The resolved provider's credential is absent from the environment."""

    status_code = 500

    def __init__(self, message: str, credential_key: str | None = None):
        super().__init__(message)
        self.credential_key = credential_key


class UpstreamExhausted(GatewayError):
    """Every retry attempt failed (transport error or non-success status)."""

    status_code = 502

    def __init__(self, message: str, last_status: int | None = None, last_error: str = ""):
        super().__init__(message)
        self.last_status = last_status
        self.last_error = last_error


class TranscodeSkip(Exception):
    """A single stream increment was malformed or carried an error payload."""

    def __init__(self, reason: str, *, silent: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.silent = silent


class ToolCallParseError(Exception):
    """A raw tool-mode response could not be interpreted."""
    pass
