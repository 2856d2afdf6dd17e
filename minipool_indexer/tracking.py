"""Registrar for minipool addresses whose events should be delivered to the indexer."""

import json
from pathlib import Path
from typing import Protocol

from minipool_indexer.constants import TRACKED_ADDRESSES_FILE
from minipool_indexer.formatters import normalize_address


class SubscriptionRegistrar(Protocol):
    def begin_tracking(self, address: str) -> None: ...  # pragma: no cover


class AddressRegistry:
    """In-memory set of tracked addresses, kept in registration order."""

    def __init__(self, addresses: list[str] | None = None) -> None:
        self._addresses: dict[str, None] = dict.fromkeys(normalize_address(a) for a in addresses or [])

    def begin_tracking(self, address: str) -> None:
        self._addresses.setdefault(normalize_address(address), None)

    def is_tracked(self, address: str) -> bool:
        return normalize_address(address) in self._addresses

    @property
    def addresses(self) -> list[str]:
        return list(self._addresses)

    def __len__(self) -> int:
        return len(self._addresses)


class JsonAddressRegistry(AddressRegistry):
    """Address registry persisted as a JSON list next to the entity store."""

    def __init__(self, store_dir: Path) -> None:
        self.path = store_dir / TRACKED_ADDRESSES_FILE
        existing: list[str] = []
        if self.path.exists():
            # Unlike an entity file, this list cannot be rebuilt from the store, so a bad file is an error.
            try:
                with self.path.open("r", encoding="utf-8") as f:
                    existing = json.load(f)
            except ValueError as ex:
                raise ValueError(f"Corrupt tracked address file {self.path}: {ex}") from ex
            if not isinstance(existing, list):
                raise ValueError(f"Corrupt tracked address file {self.path}: expected a JSON list")
        super().__init__(existing)

    def begin_tracking(self, address: str) -> None:
        before = len(self)
        super().begin_tracking(address)
        if len(self) != before:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as f:
                json.dump(self.addresses, f)
