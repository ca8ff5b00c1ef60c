"""
Operational helpers for moving application state between user namespaces.
"""

from __future__ import annotations

import logging
import time

from shiftcraft.errors import NotFoundError
from shiftcraft.kv import KeyValueFacade

logger = logging.getLogger(__name__)


def copy_namespace(
    facade: KeyValueFacade,
    source: str,
    target: str,
    *,
    overwrite: bool = True,
) -> list[tuple[str, str]]:
    """
    Copy every `source:` key to the same suffix under `target:`.

    Args:
        facade: Key-value facade over the deployment's store.
        source: Namespace to read from, without the trailing colon.
        target: Namespace to write to.
        overwrite: Replace keys that already exist under the target.

    Returns:
        The `(from, to)` key pairs that were written.
    """
    if source == target:
        raise ValueError("source and target namespaces must differ")

    source_prefix = f"{source}:"
    existing = set(facade.list(f"{target}:")) if not overwrite else set()
    copied: list[tuple[str, str]] = []
    for key in facade.list(source_prefix):
        new_key = f"{target}:{key[len(source_prefix):]}"
        if new_key in existing:
            logger.info("Skipping existing key %s", new_key)
            continue
        try:
            value = facade.get(key)
        except NotFoundError:
            # Deleted between list and get.
            continue
        facade.set(new_key, value)
        copied.append((key, new_key))
    logger.info("Copied %d keys from %s to %s", len(copied), source, target)
    return copied


def ensure_user_record(facade: KeyValueFacade, username: str) -> bool:
    """Create `user:<username>` if missing. Returns True when it was created."""
    key = f"user:{username}"
    try:
        facade.get(key)
        return False
    except NotFoundError:
        pass
    facade.set(key, {"username": username, "created": int(time.time() * 1000)})
    return True
