"""Exception hierarchy for cfg_reloader.

Every error raised by the reload engine inherits from ReloaderError so
callers can catch the whole family at once.
"""

from __future__ import annotations

from pathlib import Path


class ReloaderError(Exception):
    """Base error for all reload operations."""


class NotModifiedError(ReloaderError):
    """No configured file changed and the pass was not forced.

    Not a failure: it only tells the caller that nothing was merged.
    """

    def __init__(self) -> None:
        super().__init__("config files not modified")


class ConfigReadError(ReloaderError):
    """A config file exists but could not be read."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"failed to read {path}: {reason}")


class ConfigParseError(ReloaderError):
    """A config file is not valid JSON or its top level is not an object."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = path
        super().__init__(f"failed to process config {path}: {reason}")


class SubscriptionError(ReloaderError, ValueError):
    """A key subscription was rejected."""
