"""Console output formatting."""

from collections import Counter
from datetime import datetime, timezone

from minipool_indexer.constants import MINIPOOL_KIND
from minipool_indexer.formatters import format_fee, format_rpl, short_address
from minipool_indexer.models import Minipool, Node, Outcome
from minipool_indexer.store import EntityStore


def _format_block_time(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def minipool_status(m: Minipool) -> tuple[str, str]:
    """Returns (emoji, status)."""
    if m.destroyed_block_time and m.finalized_block_time:
        return "⚫", "Destroyed + Finalized"
    if m.destroyed_block_time:
        return "💥", "Destroyed"
    if m.finalized_block_time:
        return "🏁", "Finalized"
    return "🟢", "Active"


def print_replay_summary(outcomes: Counter[Outcome], *, events_total: int, tracked: int) -> None:
    """Print how many events each handler outcome accounted for."""
    print("=" * 70)
    print("📦 REPLAY SUMMARY")
    print(f"   Events processed: {events_total}")
    print("=" * 70)
    for outcome in Outcome:
        count = outcomes.get(outcome, 0)
        if count or outcome is Outcome.APPLIED:
            marker = "✅" if outcome is Outcome.APPLIED else "⏭️ "
            print(f"   {marker} {outcome.value}: {count}")
    print(f"   🛰️  Tracked minipool addresses: {tracked}")
    print("")


def print_node(node: Node, store: EntityStore) -> None:
    """Print a node and its minipools as currently stored."""
    print("=" * 70)
    print(f"🖥️  Node: {node.id}")
    if node.registered_block_time:
        print(f"   Registered: {_format_block_time(node.registered_block_time)}")
    print("=" * 70)
    print(f"   💸 Average fee (active minipools): {format_fee(node.average_fee_for_active_minipools)}")
    print(f"   🪙 Effective RPL staked: {format_rpl(node.effective_rpl_staked)}")
    print(f"      • Minimum: {format_rpl(node.minimum_effective_rpl)}")
    print(f"      • Maximum: {format_rpl(node.maximum_effective_rpl)}")
    print(f"   🏁 Finalized minipools: {node.total_finalized_minipools}")
    print(f"   📤 Withdrawable minipools: {node.withdrawable_minipools}")
    print(f"   🧩 Minipools ({len(node.minipool_ids)}):")
    for minipool_id in node.minipool_ids:
        m = store.load(MINIPOOL_KIND, minipool_id)
        if m is None:
            print(f"      ❓ {short_address(minipool_id)}  (not indexed)")
            continue
        emoji, status = minipool_status(m)
        print(f"      {emoji} {short_address(m.id)}  fee={format_fee(m.fee)}  {status}")
    print("")
