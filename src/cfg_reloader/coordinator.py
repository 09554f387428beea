"""Reload coordinator: one fingerprint-gated merge and diff pass at a time.

Passes triggered at startup, by the watch loop and by forced reloads all
run under a single lock, so they never interleave. A pass that finds no
content change (and is not forced) stops early with NotModifiedError.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cfg_reloader.diff import KeyCallback, KeySubscription, dispatch_changes
from cfg_reloader.errors import NotModifiedError, SubscriptionError
from cfg_reloader.hashing import read_file
from cfg_reloader.merge import merge_into, parse_document

logger = logging.getLogger(__name__)


@dataclass
class FileEntry:
    """A configured file and the fingerprint seen in the last good pass."""

    path: Path
    fingerprint: str = ""


class ReloadCoordinator:
    """Runs reload passes over an ordered list of config files.

    Thread-safe: ``reload()``, ``subscribe()`` and ``reload_time`` share a
    reentrant lock, so a callback may read ``reload_time`` during a pass.

    Args:
        files: Config file paths. Order decides merge priority; later
            files win.
        log: Logger to report through. Defaults to the module logger.
    """

    def __init__(
        self, files: Sequence[Path | str], log: logging.Logger | None = None
    ) -> None:
        self._files = [FileEntry(path=Path(p)) for p in files]
        self._subscriptions: list[KeySubscription] = []
        self._reload_time: datetime | None = None
        self._lock = threading.RLock()
        self._log = log or logger

    @property
    def files(self) -> tuple[FileEntry, ...]:
        """Snapshot of the configured file entries."""
        with self._lock:
            return tuple(FileEntry(e.path, e.fingerprint) for e in self._files)

    @property
    def reload_time(self) -> datetime | None:
        """Time of the last successful pass, or None before the first."""
        with self._lock:
            return self._reload_time

    def subscribe(self, key: str, callback: KeyCallback) -> None:
        """Register a callback for a top-level key.

        Several callbacks may share one key. There is no way to remove a
        subscription. When the key disappears the callback is called with
        empty bytes.

        Raises:
            SubscriptionError: ``callback`` is not callable.
        """
        if not callable(callback):
            raise SubscriptionError(f"callback for key {key!r} is not callable")
        with self._lock:
            self._subscriptions.append(KeySubscription(key=key, callback=callback))

    def reload(self, forced: bool = False) -> int:
        """Run one reload pass.

        Args:
            forced: Merge and diff even when no fingerprint changed.

        Returns:
            Number of subscriber callbacks invoked.

        Raises:
            NotModifiedError: Nothing changed and ``forced`` is False.
            ConfigReadError: A file could not be read.
            ConfigParseError: A file is not a valid JSON object.
        """
        with self._lock:
            snapshots = [(entry, *read_file(entry.path)) for entry in self._files]
            changed = any(digest != entry.fingerprint for entry, _, digest in snapshots)
            if not changed and not forced:
                raise NotModifiedError()

            tree: dict[str, Any] = {}
            for entry, data, digest in snapshots:
                if not digest:
                    continue
                merge_into(tree, parse_document(data, entry.path))

            invoked = dispatch_changes(tree, self._subscriptions)

            for entry, _, digest in snapshots:
                entry.fingerprint = digest
            self._reload_time = datetime.now(timezone.utc)

        self._log.info(
            "Config reloaded from %d file(s)%s, %d callback(s) invoked",
            len(snapshots),
            " (forced)" if forced else "",
            invoked,
        )
        return invoked
