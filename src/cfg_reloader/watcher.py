"""Directory watcher with a fixed-window debounced reload trigger.

The directories containing the config files are watched, not the files
themselves: editors often save by writing a temp file and renaming it
over the original, which some backends only report at directory level.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)

logger = logging.getLogger(__name__)

_DEFAULT_POLL_SECONDS = 0.1

_ACCEPTED_EVENT_TYPES = frozenset(
    {EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED}
)


class WatchBackendError(Exception):
    """The filesystem notification backend reported a problem."""


def normalize_path(path: Path | str | bytes) -> Path:
    """Make a path comparable with the paths reported by the observer.

    Only the parent directory is resolved, so a config file that is
    itself a symlink keeps its own name.
    """
    p = Path(os.fsdecode(path))
    return p.parent.resolve() / p.name


def get_watch_dirs(files: Iterable[Path]) -> list[Path]:
    """Return the deduplicated parent directories of ``files``, in order."""
    seen: set[Path] = set()
    dirs: list[Path] = []
    for f in files:
        d = normalize_path(f).parent
        if d not in seen:
            seen.add(d)
            dirs.append(d)
    return dirs


class _Forwarder(FileSystemEventHandler):
    """Watchdog handler that hands every raw event to the watch loop."""

    def __init__(self, loop: WatchLoop) -> None:
        self._loop = loop

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory and event.event_type == EVENT_TYPE_DELETED:
            gone = normalize_path(event.src_path)
            if gone in self._loop.watch_dirs:
                error = WatchBackendError(f"watched directory removed: {gone}")
                self._loop.report_error(error)
                return
        self._loop.feed(event)


class WatchLoop:
    """Filters filesystem events and turns bursts into single reloads.

    The first accepted event arms a deadline ``batch_seconds`` ahead.
    Events arriving before the deadline are absorbed without moving it.
    When it passes, ``on_batch`` is called once with the descriptions of
    every absorbed event.

    ``run()`` is the loop body and blocks; the caller owns the thread.

    Args:
        files: Config file paths to react to.
        batch_seconds: Length of the debounce window.
        on_batch: Called with the list of accepted event descriptions.
        poll_seconds: How often the loop re-checks for cancellation.
    """

    def __init__(
        self,
        files: Sequence[Path | str],
        batch_seconds: float,
        on_batch: Callable[[list[str]], None],
        poll_seconds: float = _DEFAULT_POLL_SECONDS,
    ) -> None:
        self._files = frozenset(normalize_path(f) for f in files)
        self.watch_dirs = frozenset(get_watch_dirs(self._files))
        self._batch = batch_seconds
        self._on_batch = on_batch
        self._poll = poll_seconds
        self._inbox: queue.Queue[FileSystemEvent | Exception] = queue.Queue()
        self._stop_event = threading.Event()
        self.handler = _Forwarder(self)

    def feed(self, event: FileSystemEvent) -> None:
        """Queue a raw filesystem event. Safe to call from any thread."""
        self._inbox.put(event)

    def report_error(self, error: Exception) -> None:
        """Queue a backend error to be logged by the loop."""
        self._inbox.put(error)

    def stop(self) -> None:
        """Ask ``run()`` to return at its next check."""
        self._stop_event.set()

    def describe(self, event: FileSystemEvent) -> str | None:
        """Return a description of ``event`` if it concerns a config file."""
        if event.is_directory or event.event_type not in _ACCEPTED_EVENT_TYPES:
            return None
        src = normalize_path(event.src_path)
        if src in self._files:
            return f"{event.event_type} config file ({src})"
        dest = getattr(event, "dest_path", "")
        if event.event_type == EVENT_TYPE_MOVED and dest:
            dest_path = normalize_path(dest)
            if dest_path in self._files:
                return f"{event.event_type} config file ({dest_path})"
        return None

    def run(
        self,
        cancel: threading.Event | None = None,
        is_alive: Callable[[], bool] | None = None,
    ) -> None:
        """Consume events until cancelled or the backend goes away.

        Args:
            cancel: External cancellation signal.
            is_alive: Reports whether the notification backend still runs.
        """
        deadline: float | None = None
        reasons: list[str] = []

        while not self._stop_event.is_set() and not (cancel and cancel.is_set()):
            if deadline is not None and time.monotonic() >= deadline:
                batch, reasons, deadline = reasons, [], None
                try:
                    self._on_batch(batch)
                except Exception:
                    logger.exception("Error in reload trigger")
                continue

            timeout = self._poll
            if deadline is not None:
                timeout = max(0.0, min(timeout, deadline - time.monotonic()))
            try:
                item = self._inbox.get(timeout=timeout)
            except queue.Empty:
                if deadline is None and is_alive is not None and not is_alive():
                    logger.info("Watch backend stopped, leaving watch loop")
                    return
                continue

            if isinstance(item, Exception):
                logger.error("Watch backend error: %s", item)
                continue

            reason = self.describe(item)
            if reason is None:
                continue
            logger.info("%s", reason)
            if reason not in reasons:
                reasons.append(reason)
            if deadline is None:
                deadline = time.monotonic() + self._batch
