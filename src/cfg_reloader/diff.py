"""Per-key change detection and callback dispatch.

Each subscription remembers the raw JSON it was last given. A callback
fires only when the canonical serialization of its key changes, and
once with empty bytes when the key disappears from the merged tree.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

KeyCallback = Callable[[str, bytes], None]


@dataclass
class KeySubscription:
    """A callback registered for one top-level config key.

    Attributes:
        key: Top-level key in the merged config.
        callback: Called with ``(key, raw_json)``; ``raw_json`` is empty
            when the key was removed.
        last_raw: Raw JSON last delivered to ``callback``.
    """

    key: str
    callback: KeyCallback
    last_raw: bytes = b""


def canonical_json(value: Any) -> bytes:
    """Serialize a JSON value with sorted keys and compact separators."""
    return json.dumps(
        value, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def dispatch_changes(tree: dict[str, Any], subscriptions: Iterable[KeySubscription]) -> int:
    """Invoke callbacks for every subscribed key whose value changed.

    Callbacks run synchronously in subscription order. A callback that
    raises is logged and the remaining callbacks still run.

    Args:
        tree: Freshly merged config tree.
        subscriptions: Subscriptions to evaluate, in registration order.

    Returns:
        Number of callbacks invoked.
    """
    raw_values = {key: canonical_json(value) for key, value in tree.items()}
    invoked = 0
    for sub in subscriptions:
        raw = raw_values.get(sub.key, b"")
        if raw == sub.last_raw:
            continue
        sub.last_raw = raw
        invoked += 1
        try:
            sub.callback(sub.key, raw)
        except Exception:
            logger.exception("Error in callback for config key %r", sub.key)
    return invoked
