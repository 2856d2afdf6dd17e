"""Consistency checks for the materialized node view."""

from minipool_indexer.aggregation import average_fee_for_active_minipools
from minipool_indexer.constants import MINIPOOL_KIND
from minipool_indexer.models import Node
from minipool_indexer.store import EntityStore


def validate_node(node: Node, store: EntityStore) -> list[str]:
    """
    Validate a stored node against its minipools.

    Returns a list of warnings. Minipools that fail to load are not reported; the
    aggregation leaves them out as well.
    """
    issues: list[str] = []

    # 1. Membership list has no duplicates
    seen: set[str] = set()
    for minipool_id in node.minipool_ids:
        if minipool_id in seen:
            issues.append(f"Node {node.id}: duplicate minipool id {minipool_id}")
        seen.add(minipool_id)

    # 2. Every listed minipool belongs to this node
    for minipool_id in sorted(seen):
        minipool = store.load(MINIPOOL_KIND, minipool_id)
        if minipool is not None and minipool.node != node.id:
            issues.append(f"Node {node.id}: minipool {minipool_id} is owned by {minipool.node}")

    # 3. Counters
    if node.withdrawable_minipools < 0:
        issues.append(f"Node {node.id}: negative withdrawableMinipools: {node.withdrawable_minipools}")
    if node.total_finalized_minipools < 0:
        issues.append(f"Node {node.id}: negative totalFinalizedMinipools: {node.total_finalized_minipools}")

    # 4. Stored average matches a fresh recomputation
    expected = average_fee_for_active_minipools(store, node.minipool_ids)
    if node.average_fee_for_active_minipools != expected:
        issues.append(
            f"Node {node.id}: stale averageFeeForActiveMinipools: "
            f"stored={node.average_fee_for_active_minipools} != recomputed={expected}"
        )

    return issues
