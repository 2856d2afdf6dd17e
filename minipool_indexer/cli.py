"""CLI and main logic."""

import argparse
import os
import sys
from collections.abc import Sequence
from pathlib import Path

from tqdm import tqdm

from minipool_indexer.console import print_node, print_replay_summary
from minipool_indexer.constants import (
    DEFAULT_READ_RETRIES,
    DEFAULT_RPC_TIMEOUT,
    MINIPOOL_KIND,
    NODE_KIND,
    ROCKET_STORAGE_MAINNET,
)
from minipool_indexer.contracts import ContractReader
from minipool_indexer.formatters import normalize_address, parse_address
from minipool_indexer.models import Outcome
from minipool_indexer.parsing import ChainPosition, Event, parse_positioned_stream, read_event_records
from minipool_indexer.router import Indexer
from minipool_indexer.store import InMemoryEntityStore, JsonEntityStore, ReplayCheckpoint, get_store_dir
from minipool_indexer.tracking import AddressRegistry, JsonAddressRegistry
from minipool_indexer.validation import validate_node


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments."""
    p = argparse.ArgumentParser(description="Rocket Pool node/minipool indexer over decoded chain events.")
    p.add_argument(
        "--store-dir",
        type=Path,
        default=None,
        help="Entity store directory. Default: $XDG_DATA_HOME/.minipool_indexer (or ~/.local/share).",
    )
    sub = p.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="Apply a JSON Lines file of decoded events to the store.")
    replay.add_argument("events", type=Path, help="Path to a .jsonl file of event records.")
    replay.add_argument(
        "--rpc-url",
        default=None,
        help="Execution-layer RPC URL. Required if ETH_RPC_URL environment variable is not set.",
    )
    replay.add_argument(
        "--storage",
        default=ROCKET_STORAGE_MAINNET,
        help="RocketStorage address (resolves all other contract addresses). Default: mainnet.",
    )
    replay.add_argument(
        "--no-store",
        action="store_true",
        help="Keep entities in memory only for this run.",
    )

    show = sub.add_parser("show", help="Print a node and its minipools from the store.")
    show.add_argument("node", help="Node address.")
    return p.parse_args(argv)


def build_reader(rpc_url: str, storage_address: str) -> ContractReader:
    """Connect to the RPC and resolve the contracts the indexer reads."""
    from web3 import Web3

    from minipool_indexer.contracts import Web3ContractReader, resolve_rocketpool_contracts

    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": DEFAULT_RPC_TIMEOUT}))
    if not w3.is_connected():
        raise ConnectionError(f"failed to connect to RPC at {rpc_url}")
    contracts = resolve_rocketpool_contracts(w3, storage_address)
    return Web3ContractReader(w3, contracts, retries=DEFAULT_READ_RETRIES)


def run_replay(
    events: Sequence[tuple[ChainPosition, Event]],
    indexer: Indexer,
    *,
    checkpoint: ReplayCheckpoint | None = None,
) -> list[str]:
    """
    Apply positioned events in order, then validate every node touched. Returns validation warnings.

    With a checkpoint, each finished event advances it, so an aborted run can be rerun
    on the same file without applying anything twice.
    """
    touched: dict[str, None] = {}
    with tqdm(events, desc="⛓️  Replaying events", unit="event", file=sys.stderr) as pbar:
        for position, event in pbar:
            result = indexer.process(event)
            if checkpoint is not None:
                checkpoint.advance(position)
            if result.applied:
                node_id = getattr(event, "node", None)
                if node_id is None and result.entity_id is not None:
                    minipool = indexer.ctx.store.load(MINIPOOL_KIND, result.entity_id)
                    node_id = minipool.node if minipool is not None else None
                if node_id is not None:
                    touched.setdefault(normalize_address(node_id), None)
            pbar.set_postfix(applied=indexer.outcomes.get(Outcome.APPLIED, 0))

    issues: list[str] = []
    for node_id in touched:
        node = indexer.ctx.store.load(NODE_KIND, node_id)
        if node is not None:
            issues.extend(validate_node(node, indexer.ctx.store))
    return issues


def _replay(args: argparse.Namespace, store_dir: Path) -> int:
    try:
        records = read_event_records(args.events)
        events = parse_positioned_stream(records)
    except (OSError, ValueError) as ex:
        print(f"Error: failed to read events from {args.events}: {ex}", file=sys.stderr)
        return 2

    if not events:
        print("No events found in the input file.", file=sys.stderr)
        return 1

    # Require RPC URL to be provided either via --rpc-url or ETH_RPC_URL environment variable
    rpc_url = args.rpc_url or os.getenv("ETH_RPC_URL")
    if not rpc_url:
        print(
            "Error: RPC URL is required. Provide --rpc-url or set ETH_RPC_URL environment variable.",
            file=sys.stderr,
        )
        return 2

    try:
        reader = build_reader(rpc_url, args.storage)
        print(f"ℹ️ Resolved contracts from RocketStorage ({args.storage[:10]}...)", file=sys.stderr)
    except Exception as ex:  # pylint: disable=broad-exception-caught
        print(f"Error: failed to set up contract reads ({args.storage}): {ex}", file=sys.stderr)
        return 2

    checkpoint: ReplayCheckpoint | None = None
    if args.no_store:
        store, registrar = InMemoryEntityStore(), AddressRegistry()
    else:
        try:
            store, registrar = JsonEntityStore(store_dir), JsonAddressRegistry(store_dir)
            checkpoint = ReplayCheckpoint(store_dir)
        except (OSError, ValueError) as ex:
            print(f"Error: failed to open the store at {store_dir}: {ex}", file=sys.stderr)
            return 2

    if checkpoint is not None and checkpoint.position is not None:
        done = sum(1 for position, _ in events if checkpoint.is_done(position))
        events = [(position, event) for position, event in events if not checkpoint.is_done(position)]
        print(
            f"ℹ️ Resuming after block {checkpoint.position[0]}: skipping {done} already applied events",
            file=sys.stderr,
        )

    from web3.exceptions import Web3Exception  # pylint: disable=import-outside-toplevel

    indexer = Indexer(store, reader, registrar)
    try:
        issues = run_replay(events, indexer, checkpoint=checkpoint)
    except (OSError, Web3Exception) as ex:
        # The failing event saved nothing and the checkpoint stops before it.
        print(f"Error: replay aborted on a contract read failure ({type(ex).__name__}): {ex}", file=sys.stderr)
        return 1

    print_replay_summary(indexer.outcomes, events_total=len(events), tracked=len(registrar))
    if issues:
        print("⚠️  Store consistency warnings:", file=sys.stderr)
        for issue in issues:
            print(f"   {issue}", file=sys.stderr)
    return 0


def _show(args: argparse.Namespace, store_dir: Path) -> int:
    node_id = parse_address(args.node)
    if node_id is None:
        print(f"Error: {args.node} is not an address.", file=sys.stderr)
        return 2
    store = JsonEntityStore(store_dir)
    node = store.load(NODE_KIND, node_id)
    if node is None:
        print(f"Node {args.node} is not indexed.", file=sys.stderr)
        return 1
    print_node(node, store)
    return 0


def main(argv: list[str]) -> int:
    """Main entry point."""
    args = parse_args(argv)
    store_dir = args.store_dir or get_store_dir()

    if args.command == "replay":
        return _replay(args, store_dir)
    return _show(args, store_dir)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
