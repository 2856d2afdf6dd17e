"""Entity persistence for nodes and minipools."""

import copy
import json
import os
import shutil
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Protocol

from minipool_indexer.constants import CHECKPOINT_FILE, MINIPOOL_KIND, NODE_KIND, STORE_DIR_NAME, STORE_VERSION
from minipool_indexer.models import Minipool, Node

Entity = Node | Minipool

ENTITY_TYPES: dict[str, type] = {
    NODE_KIND: Node,
    MINIPOOL_KIND: Minipool,
}


class EntityStore(Protocol):
    """Load/save by kind and id. No transactions across saves."""

    def load(self, kind: str, entity_id: str) -> Entity | None: ...  # pragma: no cover

    def save(self, entity: Entity) -> None: ...  # pragma: no cover


class InMemoryEntityStore:
    """Dict-backed store. Loads return copies so changes only land on save."""

    def __init__(self) -> None:
        self._entities: dict[tuple[str, str], Entity] = {}

    def load(self, kind: str, entity_id: str) -> Entity | None:
        entity = self._entities.get((kind, entity_id))
        return copy.deepcopy(entity) if entity is not None else None

    def save(self, entity: Entity) -> None:
        self._entities[(entity.kind, entity.id)] = copy.deepcopy(entity)


def get_store_dir() -> Path:
    """Get the store directory path. Uses XDG_DATA_HOME if available, otherwise ~/.local/share."""
    data_home = os.getenv("XDG_DATA_HOME")
    if data_home:
        base = Path(data_home)
    else:
        base = Path.home() / ".local" / "share"
    return base / STORE_DIR_NAME


def clear_store(store_dir: Path | None = None) -> None:
    """Remove all stored entities."""
    store_dir = store_dir or get_store_dir()
    if store_dir.exists():
        shutil.rmtree(store_dir)
        print("✅ Store cleared successfully.", file=sys.stderr)
    else:
        print("ℹ️  Store directory does not exist (nothing to clear).", file=sys.stderr)


def entity_from_dict(kind: str, data: dict[str, Any]) -> Entity:
    """Rebuild an entity from its stored dict."""
    entity_type = ENTITY_TYPES.get(kind)
    if entity_type is None:
        raise ValueError(f"Unknown entity kind: {kind}")
    return entity_type(**data)


class JsonEntityStore:
    """One JSON file per entity, grouped by kind under a versioned directory."""

    def __init__(self, store_dir: Path | None = None) -> None:
        self.store_dir = store_dir or get_store_dir()

    def _path(self, kind: str, entity_id: str) -> Path:
        return self.store_dir / f"v{STORE_VERSION}" / kind / f"{entity_id}.json"

    def load(self, kind: str, entity_id: str) -> Entity | None:
        """Load an entity. Returns None if not found or unreadable."""
        path = self._path(kind, entity_id)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                return entity_from_dict(kind, json.load(f))
        except Exception:  # pylint: disable=broad-exception-caught
            # A corrupted file is treated as absent
            return None

    def save(self, entity: Entity) -> None:
        path = self._path(entity.kind, entity.id)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(asdict(entity), f, ensure_ascii=False, indent=None, separators=(",", ":"))
        tmp.replace(path)

    def ids(self, kind: str) -> list[str]:
        kind_dir = self.store_dir / f"v{STORE_VERSION}" / kind
        if not kind_dir.exists():
            return []
        return sorted(p.stem for p in kind_dir.glob("*.json"))


class ReplayCheckpoint:
    """
    Chain position of the last event a replay finished, kept next to the entities.

    Finalisation is not idempotent, so a rerun must not apply an event twice.
    Records at or before the stored position are skipped on the next run.
    """

    def __init__(self, store_dir: Path) -> None:
        self.path = store_dir / CHECKPOINT_FILE
        self.position: tuple[int, int, int] | None = None
        if self.path.exists():
            try:
                with self.path.open("r", encoding="utf-8") as f:
                    position = json.load(f)["position"]
                self.position = (int(position[0]), int(position[1]), int(position[2]))
            except (ValueError, KeyError, IndexError, TypeError) as ex:
                raise ValueError(f"Corrupt replay checkpoint {self.path}: {ex}") from ex

    def is_done(self, position: tuple[int, int, int]) -> bool:
        return self.position is not None and position <= self.position

    def advance(self, position: tuple[int, int, int]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".json.tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump({"position": list(position)}, f)
        tmp.replace(self.path)
        self.position = position
