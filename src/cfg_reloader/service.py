"""Config reloader service.

Ties the pieces together: a forced reload at startup, a watchdog observer
over the config directories feeding a debounced watch loop, and an event
dispatcher announcing every content-changing reload.

Usage::

    reloader = ConfigReloader(["base.json", "local.json"], batch_seconds=0.5)
    reloader.subscribe("db", on_db_change)
    reloader.start()
    ...
    reloader.stop()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from types import TracebackType

from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from cfg_reloader.config import DEFAULT_BATCH_SECONDS, DEFAULT_IDLE_INTERVAL, ReloaderSettings
from cfg_reloader.coordinator import ReloadCoordinator
from cfg_reloader.diff import KeyCallback
from cfg_reloader.errors import NotModifiedError, ReloaderError
from cfg_reloader.events import EventDispatcher, EventStream
from cfg_reloader.watcher import WatchLoop, get_watch_dirs


class ConfigReloader:
    """Hot-reloads config merged from several JSON files.

    Subscribers register per top-level key and are called only when the
    value of their key changes, or with empty bytes when it disappears.
    Callbacks run synchronously on the thread performing the reload, so
    they must be quick or hand work off themselves.

    Args:
        files: Config file paths in merge order. Later files win; arrays
            concatenate. Missing files contribute nothing.
        batch_seconds: Debounce window for filesystem events.
        logger: Logger for info and error reporting. Defaults to the
            module logger.
        idle_interval: Event pump idle time when the queue is empty.
    """

    def __init__(
        self,
        files: Sequence[Path | str],
        batch_seconds: float = DEFAULT_BATCH_SECONDS,
        *,
        logger: logging.Logger | None = None,
        idle_interval: float = DEFAULT_IDLE_INTERVAL,
    ) -> None:
        self._files = [Path(f) for f in files]
        self._batch = batch_seconds
        self._log = logger if logger is not None else logging.getLogger(__name__)
        self._coordinator = ReloadCoordinator(self._files, log=self._log)
        self._dispatcher = EventDispatcher(idle_interval=idle_interval)
        self._loop: WatchLoop | None = None
        self._thread: threading.Thread | None = None

    @classmethod
    def from_settings(
        cls, settings: ReloaderSettings, logger: logging.Logger | None = None
    ) -> ConfigReloader:
        """Build a reloader from loaded settings."""
        return cls(
            settings.files,
            settings.batch_seconds,
            logger=logger,
            idle_interval=settings.idle_interval,
        )

    @property
    def is_running(self) -> bool:
        """Whether the watch loop thread is active."""
        return self._thread is not None and self._thread.is_alive()

    def subscribe(self, key: str, callback: KeyCallback) -> None:
        """Register ``callback`` for changes of top-level ``key``.

        Raises:
            SubscriptionError: ``callback`` is not callable.
        """
        self._coordinator.subscribe(key, callback)

    def start(self, cancel: threading.Event | None = None) -> None:
        """Load the config once, then start watching for changes.

        The first reload is forced and synchronous, so every subscriber
        has seen its initial value when this returns.

        Args:
            cancel: Optional signal that stops the watch loop when set.

        Raises:
            ReloaderError: Already started, or the first reload failed.
            OSError: The notification backend could not watch a directory.
        """
        if self._thread is not None:
            raise ReloaderError("config reloader already started")

        self._coordinator.reload(forced=True)

        loop = WatchLoop(self._files, self._batch, self._on_batch)
        observer = Observer()
        for d in get_watch_dirs(self._files):
            observer.schedule(loop.handler, str(d), recursive=False)
            self._log.info("Watching config directory: %s", d)
        observer.daemon = True
        try:
            observer.start()
        except OSError:
            observer.stop()
            raise

        self._loop = loop
        self._thread = threading.Thread(
            target=self._watch,
            args=(loop, observer, cancel),
            name="cfg-reloader-watch",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop watching, release the observer and stop the event pump."""
        if self._loop is not None:
            self._loop.stop()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=5.0)
            if self._thread.is_alive():
                self._log.warning("Config watch loop did not stop within 5 s")
        self._dispatcher.stop()

    def force_reload(self, reason: str = "forced reload") -> None:
        """Reload every file now, ignoring fingerprints.

        Raises:
            ReloaderError: The reload failed; the previous config stays.
        """
        try:
            self._coordinator.reload(forced=True)
        except ReloaderError as exc:
            raise ReloaderError(f"couldn't reload config: {exc}") from exc
        self._dispatcher.push(reason)

    def reload_time(self) -> datetime | None:
        """Time of the last successful reload, or None before ``start()``."""
        return self._coordinator.reload_time

    def events(self) -> EventStream:
        """Stream of reload events, created on first call."""
        return self._dispatcher.events()

    def __enter__(self) -> ConfigReloader:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    def _on_batch(self, reasons: list[str]) -> None:
        """Run a non-forced reload for a debounced batch of file events."""
        try:
            self._coordinator.reload()
        except NotModifiedError:
            self._log.debug("Config files unchanged after: %s", "; ".join(reasons))
            return
        except ReloaderError as exc:
            self._log.error("Config reload failed: %s", exc)
            return
        self._dispatcher.push("; ".join(reasons))

    def _watch(
        self, loop: WatchLoop, observer: BaseObserver, cancel: threading.Event | None
    ) -> None:
        """Watch thread: run the loop, then release the observer and pump."""
        try:
            loop.run(cancel=cancel, is_alive=observer.is_alive)
        finally:
            observer.stop()
            observer.join(timeout=5.0)
            self._dispatcher.stop()
            self._log.info("Stopped watching config files")
