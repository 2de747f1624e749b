"""
Error taxonomy for the blog exporter.

Every error carries the HTTP status the web layer answers with, so the
endpoints and the CLI can report failures without inspecting error types.
"""
from typing import Optional


class ExportError(Exception):
    """Base class for all exporter errors."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InputError(ExportError):
    """Missing or invalid request input."""

    status_code = 400


class UpstreamFetchError(ExportError):
    """The remote feed answered with a non-success status or was unreachable."""

    status_code = 502

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message, status_code)
        self.url = url


class ParseError(ExportError):
    """Malformed XML or an unusable feed structure."""

    status_code = 502


class MalformedId(ParseError):
    """A composite Blogger id did not contain the expected numeric part."""

    def __init__(self, value: str, delimiter: str):
        super().__init__(f"Malformed id {value!r}: expected {delimiter!r} followed by digits")
        self.value = value
        self.delimiter = delimiter


class InternalError(ExportError):
    """Unexpected fault."""

    status_code = 500
