"""Exceptions raised by the markdown to PDF pipeline.

Every failure a caller can observe is a ``ConversionError`` subclass carrying a
short ``category`` so the HTTP layer and the CLI can tell them apart.
"""

from typing import Optional


class ConversionError(Exception):
    """Base class for all conversion failures."""

    category = "conversion"
    status_code = 500

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def to_dict(self) -> dict:
        return {"category": self.category, "message": self.message}


class InputError(ConversionError):
    """Markdown or options supplied by the caller are missing or malformed."""

    category = "input"
    status_code = 400


class MarkdownParseError(ConversionError):
    """The markdown to HTML transformation failed."""

    category = "markdown"


class BrowserLaunchError(ConversionError):
    """The shared Chromium process could not be started."""

    category = "launch"


class NavigationTimeoutError(ConversionError):
    """The document did not reach network quiescence within the time limit."""

    category = "timeout"

    def __init__(self, message: str, timeout_ms: int, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.timeout_ms = timeout_ms


class RenderError(ConversionError):
    """PDF generation failed."""

    category = "render"


class BrowserCrashedError(RenderError):
    """The shared browser died while a conversion was using it."""

    category = "crash"
