"""File reading and content fingerprinting."""

from __future__ import annotations

import hashlib
from pathlib import Path

from cfg_reloader.errors import ConfigReadError


def fingerprint(data: bytes) -> str:
    """Compute the SHA256 hex digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


def read_file(path: Path) -> tuple[bytes, str]:
    """Read a config file and fingerprint its contents.

    A missing file is valid input: it contributes nothing and yields an
    empty content and an empty fingerprint.

    Args:
        path: Path to the config file.

    Returns:
        Tuple of (content bytes, SHA256 hex digest).

    Raises:
        ConfigReadError: The file exists but could not be read.
    """
    try:
        with open(path, "rb") as f:
            data = f.read()
    except FileNotFoundError:
        return b"", ""
    except OSError as exc:
        raise ConfigReadError(path, exc.strerror or str(exc)) from exc
    return data, fingerprint(data)
