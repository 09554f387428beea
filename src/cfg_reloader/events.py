"""Reload event dispatcher.

Producers push reload events onto an unbounded FIFO queue. A single pump
thread moves them, oldest first, onto a shared EventStream that consumers
pull from. The stream and its pump are created on first access, and a
slow consumer makes the queue grow rather than lose events.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

_DEFAULT_IDLE_INTERVAL = 0.2


@dataclass(frozen=True)
class Event:
    """A completed reload.

    Attributes:
        time: When the event was recorded (UTC).
        reason: Human-readable description of what triggered the reload.
    """

    reason: str
    time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EventStream:
    """Pull-style channel of reload events.

    Delivery is a one-slot handoff: the dispatcher blocks until the
    previous event has been taken.
    """

    def __init__(self, poll_interval: float = _DEFAULT_IDLE_INTERVAL) -> None:
        self._slot: queue.Queue[Event] = queue.Queue(maxsize=1)
        self._closed = threading.Event()
        self._poll = poll_interval

    @property
    def closed(self) -> bool:
        """Whether the dispatcher has stopped feeding this stream."""
        return self._closed.is_set()

    def get(self, timeout: float | None = None) -> Event:
        """Return the next event.

        Without a timeout this waits until an event arrives or the stream
        is closed. An event already handed over before the close is still
        returned.

        Raises:
            queue.Empty: No event arrived within ``timeout`` seconds, or
                the stream is closed and drained.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            wait = self._poll
            if deadline is not None:
                wait = max(0.0, min(wait, deadline - time.monotonic()))
            try:
                return self._slot.get(timeout=wait)
            except queue.Empty:
                if self._closed.is_set():
                    raise
                if deadline is not None and time.monotonic() >= deadline:
                    raise

    def __iter__(self) -> Iterator[Event]:
        while True:
            try:
                yield self._slot.get(timeout=self._poll)
            except queue.Empty:
                if self._closed.is_set():
                    return

    def _offer(self, event: Event, timeout: float) -> bool:
        try:
            self._slot.put(event, timeout=timeout)
        except queue.Full:
            return False
        return True

    def _close(self) -> None:
        self._closed.set()


class EventDispatcher:
    """Queues reload events and pumps them to a lazily created stream.

    Args:
        idle_interval: Seconds the pump waits before re-checking an empty
            queue.
    """

    def __init__(self, idle_interval: float = _DEFAULT_IDLE_INTERVAL) -> None:
        self._idle = idle_interval
        self._queue: deque[Event] = deque()
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._stream: EventStream | None = None
        self._pump: threading.Thread | None = None

    @property
    def pending(self) -> int:
        """Number of queued, undelivered events."""
        with self._lock:
            return len(self._queue)

    def events(self) -> EventStream:
        """Return the shared event stream, starting the pump on first call."""
        with self._lock:
            if self._stream is None:
                self._stream = EventStream(poll_interval=self._idle)
                if self._done.is_set():
                    self._stream._close()
                else:
                    self._pump = threading.Thread(
                        target=self._run,
                        args=(self._stream,),
                        name="cfg-reloader-events",
                        daemon=True,
                    )
                    self._pump.start()
            return self._stream

    def push(self, reason: str) -> None:
        """Queue an event for delivery.

        Ignored until the stream exists or after ``stop()``, since there
        is no one to deliver to.
        """
        with self._lock:
            if self._stream is None or self._done.is_set():
                return
            self._queue.append(Event(reason=reason))

    def stop(self) -> None:
        """Stop the pump and discard undelivered events."""
        self._done.set()
        with self._lock:
            self._queue.clear()
            stream = self._stream
            pump = self._pump
            self._pump = None
        if pump is not None and pump is not threading.current_thread():
            pump.join(timeout=5.0)
        if stream is not None:
            stream._close()

    def _pop(self) -> Event | None:
        with self._lock:
            return self._queue.popleft() if self._queue else None

    def _run(self, stream: EventStream) -> None:
        """Pump thread: deliver queued events in order until stopped."""
        while not self._done.is_set():
            event = self._pop()
            if event is None:
                self._done.wait(self._idle)
                continue
            while not self._done.is_set():
                if stream._offer(event, timeout=self._idle):
                    logger.debug("Delivered reload event: %s", event.reason)
                    break
