"""Entity construction and derived node state."""

from collections.abc import Iterable

from minipool_indexer.constants import MINIPOOL_KIND
from minipool_indexer.contracts import ContractReader
from minipool_indexer.models import Minipool, Node
from minipool_indexer.store import EntityStore


def create_node(node_id: str, *, registered_block_time: int = 0) -> Node:
    """Create a zero-initialized Node."""
    return Node(id=node_id, registered_block_time=registered_block_time)


def create_minipool(minipool_id: str, node: Node, fee: int) -> Minipool:
    """Create an active Minipool owned by `node` with its fee fixed at `fee`."""
    return Minipool(
        id=minipool_id,
        node=node.id,
        fee=fee,
        destroyed_block_time=0,
        finalized_block_time=0,
    )


def average_fee_for_active_minipools(store: EntityStore, minipool_ids: Iterable[str] | None) -> int:
    """
    Average fee over the active minipools among `minipool_ids`, using truncating division.

    Every id is reloaded from the store. Ids that do not load, and minipools that are
    destroyed or finalized, are left out. Returns 0 when nothing active remains or the
    active fees sum to 0.
    """
    if not minipool_ids:
        return 0

    total_fee = 0
    active = 0
    for minipool_id in minipool_ids:
        if minipool_id is None:
            continue
        minipool = store.load(MINIPOOL_KIND, minipool_id)
        if minipool is None or not minipool.is_active:
            continue
        active += 1
        total_fee += minipool.fee

    if active > 0 and total_fee > 0:
        return total_fee // active
    return 0


def refresh_effective_rpl_staked(node: Node, reader: ContractReader) -> None:
    """Overwrite the node's stake snapshot with the current effective/min/max RPL stake."""
    node.effective_rpl_staked = reader.get_node_effective_stake(node.id)
    node.minimum_effective_rpl = reader.get_node_minimum_stake(node.id)
    node.maximum_effective_rpl = reader.get_node_maximum_stake(node.id)
