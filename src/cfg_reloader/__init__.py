"""cfg_reloader: hot-reload of config merged from several JSON files."""

from cfg_reloader.config import ReloaderSettings, load_settings
from cfg_reloader.errors import (
    ConfigParseError,
    ConfigReadError,
    NotModifiedError,
    ReloaderError,
    SubscriptionError,
)
from cfg_reloader.events import Event, EventStream
from cfg_reloader.service import ConfigReloader

__all__ = [
    "ConfigParseError",
    "ConfigReadError",
    "ConfigReloader",
    "Event",
    "EventStream",
    "NotModifiedError",
    "ReloaderError",
    "ReloaderSettings",
    "SubscriptionError",
    "load_settings",
]
