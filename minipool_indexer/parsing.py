"""Parsing of already-decoded event records into typed events."""

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from minipool_indexer.constants import (
    FINALISED_MINIPOOL_COUNT_INCREMENTED,
    MINIPOOL_CREATED,
    MINIPOOL_DESTROYED,
    NODE_REGISTERED,
)
from minipool_indexer.formatters import as_int, parse_address
from minipool_indexer.models import (
    BlockContext,
    FinalisedMinipoolCountIncremented,
    MinipoolCreated,
    MinipoolDestroyed,
    NodeRegistered,
)

Event = NodeRegistered | MinipoolCreated | MinipoolDestroyed | FinalisedMinipoolCountIncremented
ChainPosition = tuple[int, int, int]


def _address(record: dict[str, Any], name: str) -> str | None:
    # Anything that is not an address becomes None so the handler skips the event.
    return parse_address(record.get(name))


def _block(record: dict[str, Any]) -> BlockContext | None:
    # A record without a block timestamp has no usable block context.
    if record.get("blockTimestamp") is None:
        return None
    return BlockContext(
        block_number=as_int(record.get("blockNumber")),
        block_timestamp=as_int(record.get("blockTimestamp")),
        transaction_index=as_int(record.get("transactionIndex")),
        log_index=as_int(record.get("logIndex")),
    )


def parse_event_record(record: dict[str, Any]) -> Event:
    """
    Build a typed event from a decoded record.

    Records look like the JSON-RPC log shape plus decoded params, e.g.:
        {"kind": "minipool_created", "node": "0x..", "minipool": "0x..",
         "blockNumber": "0x10", "blockTimestamp": 1700000000, "transactionIndex": 0, "logIndex": 3}

    Missing params are passed through as None; handlers skip such events.
    Raises ValueError for a record that is not an object or has an unknown kind.
    """
    if not isinstance(record, dict):
        raise ValueError("Unexpected event record format (expected JSON object)")

    kind = record.get("kind")
    block = _block(record)
    if kind == NODE_REGISTERED:
        return NodeRegistered(node=_address(record, "node"), block=block)
    if kind == MINIPOOL_CREATED:
        return MinipoolCreated(node=_address(record, "node"), minipool=_address(record, "minipool"), block=block)
    if kind == MINIPOOL_DESTROYED:
        return MinipoolDestroyed(node=_address(record, "node"), minipool=_address(record, "minipool"), block=block)
    if kind == FINALISED_MINIPOOL_COUNT_INCREMENTED:
        return FinalisedMinipoolCountIncremented(from_address=_address(record, "from"), block=block)
    raise ValueError(f"Unknown event record kind: {kind!r}")


def chain_order_key(record: dict[str, Any]) -> ChainPosition:
    """
    Sort key putting records in chain order: block, then transaction, then log.

    Call records (finalisations) have no log index and sort as log 0, ahead of the
    logs emitted by the same transaction.
    """
    if not isinstance(record, dict):
        # parse_event_record rejects it later
        return (0, 0, 0)
    return (
        as_int(record.get("blockNumber")),
        as_int(record.get("transactionIndex")),
        as_int(record.get("logIndex")),
    )


def read_event_records(path: Path) -> list[dict[str, Any]]:
    """Read a JSON Lines file of event records. Blank lines are ignored."""
    records: list[dict[str, Any]] = []
    with path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as ex:
                raise ValueError(f"{path}:{line_no}: invalid JSON: {ex.msg}") from ex
    return records


def parse_positioned_stream(records: Iterable[dict[str, Any]]) -> list[tuple[ChainPosition, Event]]:
    """Order records by chain position and parse them, keeping each record's position."""
    return [(chain_order_key(r), parse_event_record(r)) for r in sorted(records, key=chain_order_key)]


def parse_event_stream(records: Iterable[dict[str, Any]]) -> list[Event]:
    """Order records by chain position and parse them."""
    return [event for _, event in parse_positioned_stream(records)]
