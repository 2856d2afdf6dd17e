"""Aggregation handlers, one per event kind."""

from dataclasses import dataclass

from minipool_indexer.aggregation import (
    average_fee_for_active_minipools,
    create_minipool,
    create_node,
    refresh_effective_rpl_staked,
)
from minipool_indexer.constants import MINIPOOL_KIND, NODE_KIND
from minipool_indexer.contracts import ContractReader
from minipool_indexer.formatters import parse_address
from minipool_indexer.models import (
    FinalisedMinipoolCountIncremented,
    HandlerResult,
    MinipoolCreated,
    MinipoolDestroyed,
    NodeRegistered,
    Outcome,
)
from minipool_indexer.store import EntityStore
from minipool_indexer.tracking import SubscriptionRegistrar


@dataclass(frozen=True)
class HandlerContext:
    """Collaborators a handler needs to process one event."""

    store: EntityStore
    reader: ContractReader
    registrar: SubscriptionRegistrar


def handle_node_registered(event: NodeRegistered, ctx: HandlerContext) -> HandlerResult:
    """Occurs when an operator registers a node. The only place nodes are created."""
    if event is None or event.block is None:
        return HandlerResult(Outcome.SKIPPED_MALFORMED)
    node_id = parse_address(event.node)
    if node_id is None:
        return HandlerResult(Outcome.SKIPPED_MALFORMED)
    if ctx.store.load(NODE_KIND, node_id) is not None:
        return HandlerResult(Outcome.SKIPPED_DUPLICATE, node_id)

    ctx.store.save(create_node(node_id, registered_block_time=event.block.block_timestamp))
    return HandlerResult(Outcome.APPLIED, node_id)


def handle_minipool_created(event: MinipoolCreated, ctx: HandlerContext) -> HandlerResult:
    """Occurs when a node operator makes an ETH deposit on their node to create a minipool."""
    if event is None:
        return HandlerResult(Outcome.SKIPPED_MALFORMED)
    node_id, minipool_id = parse_address(event.node), parse_address(event.minipool)
    if node_id is None or minipool_id is None:
        return HandlerResult(Outcome.SKIPPED_MALFORMED)

    # There can't be an existing minipool with the same address.
    if ctx.store.load(MINIPOOL_KIND, minipool_id) is not None:
        return HandlerResult(Outcome.SKIPPED_DUPLICATE, minipool_id)

    # The parent node has to exist; it is never created here.
    node = ctx.store.load(NODE_KIND, node_id)
    if node is None:
        return HandlerResult(Outcome.SKIPPED_MISSING_NODE, minipool_id)

    # The manager emits this right after the minipool constructor ran, so the current
    # network fee is the fee the minipool was minted with.
    minipool = create_minipool(minipool_id, node, ctx.reader.get_current_network_fee())

    if minipool.id not in node.minipool_ids:
        node.minipool_ids = [*node.minipool_ids, minipool.id]

    # New collateral changes the stake bounds.
    refresh_effective_rpl_staked(node, ctx.reader)

    ctx.store.save(minipool)
    node.average_fee_for_active_minipools = average_fee_for_active_minipools(ctx.store, node.minipool_ids)
    ctx.store.save(node)

    ctx.registrar.begin_tracking(minipool.id)
    return HandlerResult(Outcome.APPLIED, minipool.id)


def handle_minipool_destroyed(event: MinipoolDestroyed, ctx: HandlerContext) -> HandlerResult:
    """Occurs when a minipool is dissolved and the node operator calls destroy on it."""
    if event is None or event.block is None:
        return HandlerResult(Outcome.SKIPPED_MALFORMED)
    node_id, minipool_id = parse_address(event.node), parse_address(event.minipool)
    if node_id is None or minipool_id is None:
        return HandlerResult(Outcome.SKIPPED_MALFORMED)

    # There must be an indexed minipool.
    minipool = ctx.store.load(MINIPOOL_KIND, minipool_id)
    if minipool is None:
        return HandlerResult(Outcome.SKIPPED_MISSING_MINIPOOL, minipool_id)

    node = ctx.store.load(NODE_KIND, node_id)
    if node is None:
        return HandlerResult(Outcome.SKIPPED_MISSING_NODE, minipool_id)

    minipool_ids = list(node.minipool_ids)

    # Not guarded against redelivery: the same event writes the same timestamp.
    minipool.destroyed_block_time = event.block.block_timestamp

    # Destroying a minipool lowers the collateral requirements.
    refresh_effective_rpl_staked(node, ctx.reader)

    ctx.store.save(minipool)
    node.average_fee_for_active_minipools = average_fee_for_active_minipools(ctx.store, minipool_ids)
    ctx.store.save(node)
    return HandlerResult(Outcome.APPLIED, minipool.id)


def handle_finalised_minipool_count_incremented(
    call: FinalisedMinipoolCountIncremented, ctx: HandlerContext
) -> HandlerResult:
    """Occurs after a node operator finalises a minipool to unlock their RPL stake."""
    if call is None or call.block is None:
        return HandlerResult(Outcome.SKIPPED_MALFORMED)
    from_id = parse_address(call.from_address)
    if from_id is None:
        return HandlerResult(Outcome.SKIPPED_MALFORMED)

    # The caller should be a minipool with a valid link to a node.
    minipool = ctx.store.load(MINIPOOL_KIND, from_id)
    if minipool is None or not minipool.node:
        return HandlerResult(Outcome.SKIPPED_MISSING_MINIPOOL, from_id)

    node = ctx.store.load(NODE_KIND, minipool.node)
    if node is None:
        return HandlerResult(Outcome.SKIPPED_MISSING_NODE, minipool.id)

    minipool_ids = list(node.minipool_ids)

    minipool.finalized_block_time = call.block.block_timestamp

    node.total_finalized_minipools += 1
    # Models a single in-flight slot rather than a true count; kept as the protocol has it.
    node.withdrawable_minipools = max(node.total_finalized_minipools - 1, 0)

    # A finalised minipool lowers the collateral requirements.
    refresh_effective_rpl_staked(node, ctx.reader)

    ctx.store.save(minipool)
    node.average_fee_for_active_minipools = average_fee_for_active_minipools(ctx.store, minipool_ids)
    ctx.store.save(node)
    return HandlerResult(Outcome.APPLIED, minipool.id)
