"""Whole-file JSON persistence for the subscription database.

The file is read once and rewritten in full on every save. Older layouts are
upgraded in memory by ``migrate`` before validation; the upgraded layout is
written back on the next save.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import ValidationError

from . import __version__
from .exceptions import StoreError, StoreVersionError
from .schemas import StoreRecord

logger = logging.getLogger(__name__)

# Version stamped on stores upgraded from the list-shaped layout
LEGACY_STORE_VERSION = "0.0.0"


def _major(version: str) -> int:
    head = str(version).lstrip("v").split(".", 1)[0]
    try:
        return int(head)
    except ValueError:
        return 0


def _migrate_legacy_list(entries: List[Any]) -> Dict[str, Any]:
    """Upgrade the list-shaped layout of early releases.

    Early stores held ``[{vid, name, keywords, episodes: [{title, link, ep}]}]``
    with a scalar ``ep``. The ``vid`` is dropped; sids are derived again when
    the database loads.
    """
    subscriptions = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise StoreError(f"Unexpected legacy store entry: {entry!r}")
        threads = []
        for episode in entry.get("episodes") or []:
            ep = episode.get("ep")
            # Unparsed episode numbers were stored as null
            if isinstance(ep, bool) or not isinstance(ep, (int, float)):
                logger.warning("Dropping legacy episode without a number: %r", episode)
                continue
            threads.append(
                {"title": episode.get("title"), "link": episode.get("link"), "ep": [ep]}
            )
        subscriptions.append(
            {
                "name": entry.get("name", ""),
                "keywords": entry.get("keywords") or [],
                "sid": None,
                "threads": threads,
            }
        )
    return {"version": LEGACY_STORE_VERSION, "subscriptions": subscriptions}


def migrate(data: Any, current_version: str = __version__) -> Dict[str, Any]:
    """Bring a raw store document up to the current layout.

    Raises:
        StoreVersionError: If the document comes from a newer major release
        StoreError: If the document has an unknown shape
    """
    if isinstance(data, list):
        logger.info("Migrating list-shaped store with %d entries", len(data))
        return _migrate_legacy_list(data)
    if not isinstance(data, dict):
        raise StoreError(f"Store must hold an object, got {type(data).__name__}")

    stored_version = str(data.get("version") or LEGACY_STORE_VERSION)
    if _major(stored_version) > _major(current_version):
        raise StoreVersionError(stored_version, current_version)
    if stored_version != current_version:
        logger.debug("Store version %s will be rewritten as %s", stored_version, current_version)
    return {**data, "version": stored_version}


class Store:
    """JSON file holding one ``StoreRecord``.

    Example:
        >>> store = Store("~/.local/share/dmhy-subscribe/fakedb.json")
        >>> record = store.load()
        >>> store.save(record)
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path).expanduser()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> StoreRecord:
        """Read and validate the store, creating an empty one when missing.

        Raises:
            StoreError: If the file cannot be read, parsed or validated
        """
        if not self.exists():
            logger.info("Creating empty subscription store at %s", self.path)
            empty = StoreRecord(version=__version__)
            self.save(empty)
            return empty

        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Failed to read store: {exc}", path=str(self.path)) from exc

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StoreError(f"Invalid JSON in store: {exc}", path=str(self.path)) from exc

        try:
            return StoreRecord.model_validate(migrate(data))
        except StoreVersionError as exc:
            raise StoreVersionError(exc.stored, exc.current, path=str(self.path)) from None
        except ValidationError as exc:
            raise StoreError(f"Invalid store layout: {exc}", path=str(self.path)) from exc

    def save(self, record: StoreRecord) -> None:
        """Overwrite the whole file with ``record``."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = record.model_dump(mode="json")
        self.path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        logger.debug("Saved %d subscriptions to %s", len(record.subscriptions), self.path)
