"""Deterministic deep merge of JSON config documents.

Documents are merged in the order the files were configured:

- objects merge recursively (union of keys)
- arrays concatenate, earlier elements first
- any other combination: the later value replaces the earlier one

Keys missing from a later document are kept from the earlier ones.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from cfg_reloader.errors import ConfigParseError
from cfg_reloader.hashing import read_file

logger = logging.getLogger(__name__)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not a valid JSON value")


def parse_document(data: bytes, source: Path | str) -> dict[str, Any]:
    """Decode a config file's bytes into a JSON object.

    Args:
        data: Raw file content.
        source: Where the data came from, used in error messages.

    Returns:
        The decoded top-level object.

    Raises:
        ConfigParseError: The data is not valid JSON or not an object.
    """
    try:
        doc = json.loads(data, parse_constant=_reject_constant)
    except ValueError as exc:
        raise ConfigParseError(source, f"invalid json: {exc}") from exc
    if not isinstance(doc, dict):
        raise ConfigParseError(
            source, f"top level must be a JSON object, got {type(doc).__name__}"
        )
    return doc


def merge_into(acc: dict[str, Any], doc: dict[str, Any]) -> dict[str, Any]:
    """Merge ``doc`` into ``acc`` in place and return ``acc``."""
    for key, value in doc.items():
        current = acc.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merge_into(current, value)
        elif isinstance(current, list) and isinstance(value, list):
            acc[key] = current + copy.deepcopy(value)
        else:
            acc[key] = copy.deepcopy(value)
    return acc


def merge_documents(docs: Iterable[dict[str, Any]]) -> dict[str, Any]:
    """Merge documents left to right into a fresh tree."""
    tree: dict[str, Any] = {}
    for doc in docs:
        merge_into(tree, doc)
    return tree


def merge_files(paths: Sequence[Path]) -> dict[str, Any]:
    """Read, parse and merge config files in order, skipping missing ones.

    Raises:
        ConfigReadError: A file exists but could not be read.
        ConfigParseError: A file is not a valid JSON object.
    """
    tree: dict[str, Any] = {}
    for path in paths:
        data, digest = read_file(path)
        if not digest:
            logger.debug("Config file %s does not exist, skipping", path)
            continue
        merge_into(tree, parse_document(data, path))
    return tree
