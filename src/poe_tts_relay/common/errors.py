"""Relay error taxonomy.

Every failure surfaced to an HTTP caller derives from :class:`RelayError`,
which carries the status code and the message placed in ``{"error": ...}``.
"""
from __future__ import annotations


class RelayError(Exception):
    """Base class for errors that map to an HTTP status."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.headers: dict[str, str] = {}
        if status_code is not None:
            self.status_code = status_code


class InvalidInput(RelayError):
    status_code = 400


class MethodNotAllowed(RelayError):
    status_code = 405

    def __init__(self, allow: str = "POST") -> None:
        super().__init__("Method Not Allowed")
        self.headers["Allow"] = allow


class ConfigurationError(RelayError):
    status_code = 500


class UpstreamError(RelayError):
    """Non-success reply (or no reply at all) from the completion API."""

    def __init__(self, status_code: int, body: str) -> None:
        if not 400 <= status_code <= 599:
            status_code = 502
        super().__init__(f"Upstream API error: {body}", status_code=status_code)
        self.body = body


class StreamError(RelayError):
    status_code = 500


class StreamTimeoutError(StreamError):
    pass


class NoDataError(StreamError):
    pass


class InvalidURLError(RelayError):
    status_code = 500


class DownloadError(RelayError):
    status_code = 500


class InternalError(RelayError):
    status_code = 500
