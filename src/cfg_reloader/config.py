"""Settings loading and validation for cfg_reloader."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SECONDS = 0.5
DEFAULT_IDLE_INTERVAL = 0.2


@dataclass(frozen=True)
class ReloaderSettings:
    """Reloader settings (immutable).

    Attributes:
        files: Config files in merge order; later files win.
        batch_seconds: Debounce window for filesystem events.
        idle_interval: How long the event pump idles on an empty queue.
    """

    files: tuple[Path, ...]
    batch_seconds: float = DEFAULT_BATCH_SECONDS
    idle_interval: float = DEFAULT_IDLE_INTERVAL

    def __post_init__(self) -> None:
        if not self.files:
            raise ValueError("at least one config file is required")
        if self.batch_seconds <= 0:
            raise ValueError(f"batch_seconds must be positive, got {self.batch_seconds}")
        if self.idle_interval <= 0:
            raise ValueError(f"idle_interval must be positive, got {self.idle_interval}")


def _expand_path(p: str | Path, base: Path) -> Path:
    """Expand ~ and anchor relative paths at ``base``."""
    path = Path(p).expanduser()
    return path if path.is_absolute() else base / path


def load_settings(path: Path) -> ReloaderSettings:
    """Load reloader settings from a JSON file.

    Relative entries in ``files`` resolve against the settings file's
    directory.

    Args:
        path: Path to the settings file.

    Returns:
        Loaded ReloaderSettings instance.

    Raises:
        ValueError: The settings are missing ``files`` or hold invalid values.
    """
    logger.info("Loading settings from %s", path)
    with open(path) as f:
        data: dict[str, Any] = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"settings file {path} must contain a JSON object")

    raw_files = data.get("files")
    if not isinstance(raw_files, list) or not raw_files:
        raise ValueError(f"settings file {path} must list at least one entry in 'files'")
    for entry in raw_files:
        if not isinstance(entry, str):
            raise ValueError(
                f"settings file {path}: 'files' entries must be strings, got {entry!r}"
            )

    base = path.parent
    return ReloaderSettings(
        files=tuple(_expand_path(f, base) for f in raw_files),
        batch_seconds=_seconds(data, "batch_seconds", DEFAULT_BATCH_SECONDS, path),
        idle_interval=_seconds(data, "idle_interval", DEFAULT_IDLE_INTERVAL, path),
    )


def _seconds(data: dict[str, Any], key: str, default: float, path: Path) -> float:
    """Read a duration in seconds, rejecting non-numeric values."""
    value = data.get(key, default)
    # bool is an int subclass; json true/false is never a duration
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"settings file {path}: '{key}' must be a number, got {value!r}")
    return float(value)
