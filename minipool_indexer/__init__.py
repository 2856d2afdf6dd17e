"""Rocket Pool node/minipool indexer package."""

from typing import NoReturn

__version__ = "0.1.0"


def _entry_point() -> NoReturn:
    """Entry point for the minipool-indexer script."""
    import sys

    from minipool_indexer.cli import main

    raise SystemExit(main(sys.argv[1:]))


def _clear_store_entry_point() -> NoReturn:
    """Entry point for clearing the entity store."""
    from minipool_indexer.store import clear_store

    clear_store()
    raise SystemExit(0)
