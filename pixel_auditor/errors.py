"""Exceptions raised by the audit engine.

Only input problems and page-fetch failures ever reach the caller. Everything
downstream of a fetched page degrades instead of raising.
"""

MANUAL_HTML_HINT = "Paste the page source and use manual HTML mode instead."


class PixelAuditError(Exception):
    """Base class for all audit errors. ``code`` is a stable machine-readable tag."""

    code = "AUDIT_ERROR"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        if code:
            self.code = code


class InputError(PixelAuditError):
    code = "URL_OR_HTML_REQUIRED"


class PageFetchError(PixelAuditError):
    code = "FETCH_FAILED"

    def __init__(self, message: str, code: str = None, status_code: int = None):
        super().__init__(message, code)
        self.status_code = status_code


class PageTimeoutError(PageFetchError):
    code = "TIMEOUT"
