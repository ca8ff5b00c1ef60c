"""
Key-value facade used by the storage route.

Values are stored JSON-encoded so any JSON value, strings included, reads back
as it was written. Keys are flat strings, conventionally `namespace:key`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from shiftcraft.errors import NotFoundError, StorageError
from shiftcraft.storage import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of `set_batch`. `count` is the number of entries applied."""

    count: int = 0
    failed: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


class KeyValueFacade:
    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def get(self, key: str) -> Any:
        text = self.store.get_text(key)
        if text is None:
            raise NotFoundError("Key not found", key=key)
        try:
            return json.loads(text)
        except ValueError as e:
            raise StorageError(f"Storage error: {key} is not valid JSON", detail=str(e))

    def set(self, key: str, value: Any) -> None:
        self.store.put_text(key, json.dumps(value))

    def delete(self, key: str) -> None:
        self.store.delete(key)

    def list(self, prefix: Optional[str] = None) -> list[str]:
        return self.store.list_keys(prefix or "")

    def set_batch(self, entries: Iterable[dict]) -> BatchResult:
        """
        Apply each entry independently.

        A failing entry is logged and skipped; entries already written stay
        written.
        """
        result = BatchResult()
        for entry in entries:
            key = entry.get("key")
            try:
                if not key:
                    raise ValueError("entry has no key")
                self.set(key, entry.get("value"))
            except Exception as e:
                logger.warning("set-batch entry %r failed: %s", key, e)
                result.failed.append(str(key))
                continue
            result.count += 1
        return result
