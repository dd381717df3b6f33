"""Error taxonomy for template-kit runs.

Every failure a run can surface derives from TemplateKitError so callers
can catch the whole family at once. Argument and descriptor shape errors
also derive from TypeError, matching what they report.
"""

from pathlib import Path


class TemplateKitError(Exception):
    """Base class for all template-kit errors."""

    pass


class InvalidArgumentError(TemplateKitError, TypeError):
    """Raised when caller-supplied options have the wrong shape."""

    pass


class DestinationExistsError(TemplateKitError, FileExistsError):
    """Raised when the destination is a non-empty path and force is off."""

    pass


class SourceNotFoundError(TemplateKitError):
    """Raised when no resolution branch can locate the template source."""

    pass


class GitNotFoundError(TemplateKitError):
    """Raised when a git source is requested but git is not installed."""

    pass


class GitCloneError(TemplateKitError):
    """Raised when cloning a git source fails."""

    pass


class UnknownFileTypeError(TemplateKitError):
    """Raised when a downloaded payload's archive type cannot be determined."""

    pass


class TransportError(TemplateKitError):
    """Raised for HTTP failures and archive extraction failures."""

    pass


class InvalidMetaError(TemplateKitError, TypeError):
    """Raised when a template descriptor fails shape validation."""

    pass


class RenderError(TemplateKitError):
    """Raised when a template file fails to render."""

    def __init__(self, path: Path | str, message: str):
        self.path = path
        super().__init__(f"Failed to render {path}: {message}")
