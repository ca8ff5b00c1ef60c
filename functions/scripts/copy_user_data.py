"""
CLI helper to copy one user's stored state into another user's namespace.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from shiftcraft.config import get_settings
from shiftcraft.dependencies import get_kv_store
from shiftcraft.kv import KeyValueFacade
from shiftcraft.logging_setup import setup_logging
from shiftcraft.migration import copy_namespace, ensure_user_record

logger = logging.getLogger("shiftcraft.scripts.copy_user_data")


def main() -> int:
    parser = argparse.ArgumentParser(description="Copy keys between user namespaces")
    parser.add_argument("source", help="Namespace to copy from, e.g. mike")
    parser.add_argument("target", help="Namespace to copy to, e.g. cve")
    parser.add_argument(
        "--no-overwrite",
        action="store_true",
        help="Keep keys that already exist under the target namespace",
    )
    parser.add_argument(
        "--create-user",
        action="store_true",
        help="Also create the user:<target> account record when missing",
    )
    args = parser.parse_args()

    setup_logging(get_settings().log_level)
    facade = KeyValueFacade(get_kv_store())
    copied = copy_namespace(
        facade, args.source, args.target, overwrite=not args.no_overwrite
    )
    for src, dest in copied:
        logger.info("%s -> %s", src, dest)
    if args.create_user and ensure_user_record(facade, args.target):
        logger.info("Created user:%s", args.target)
    return 0


if __name__ == "__main__":
    sys.exit(main())
