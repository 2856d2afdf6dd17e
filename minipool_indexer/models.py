"""Data models for the minipool indexer."""

from dataclasses import dataclass, field
from enum import Enum

from minipool_indexer.constants import MINIPOOL_KIND, NODE_KIND


@dataclass(frozen=True)
class RocketPoolContracts:
    """Container for Rocket Pool contract addresses resolved from RocketStorage."""

    storage: str
    network_fees: str
    node_staking: str


@dataclass
class Node:
    """Materialized view of a node operator."""

    id: str
    # Insertion order is creation order; an id appears at most once.
    minipool_ids: list[str] = field(default_factory=list)
    total_finalized_minipools: int = 0
    withdrawable_minipools: int = 0
    # Stake snapshot, valid as of the last refresh only.
    effective_rpl_staked: int = 0
    minimum_effective_rpl: int = 0
    maximum_effective_rpl: int = 0
    average_fee_for_active_minipools: int = 0
    registered_block_time: int = 0

    kind = NODE_KIND


@dataclass
class Minipool:
    """Materialized view of a minipool owned by exactly one node."""

    id: str
    node: str
    # Network node fee at creation, 1e18 fixed point. Never revised.
    fee: int
    # 0 means not destroyed / not finalized.
    destroyed_block_time: int = 0
    finalized_block_time: int = 0

    kind = MINIPOOL_KIND

    @property
    def is_active(self) -> bool:
        return self.destroyed_block_time == 0 and self.finalized_block_time == 0


@dataclass(frozen=True)
class BlockContext:
    """Position of an event on chain."""

    block_number: int
    block_timestamp: int
    transaction_index: int = 0
    log_index: int = 0


@dataclass(frozen=True)
class NodeRegistered:
    """A node operator registered a node with the node manager."""

    node: str | None
    block: BlockContext | None


@dataclass(frozen=True)
class MinipoolCreated:
    """An operator deposited ETH on a node and a minipool was minted."""

    node: str | None
    minipool: str | None
    block: BlockContext | None


@dataclass(frozen=True)
class MinipoolDestroyed:
    """A dissolved minipool was destroyed by its operator."""

    node: str | None
    minipool: str | None
    block: BlockContext | None


@dataclass(frozen=True)
class FinalisedMinipoolCountIncremented:
    """Call from a minipool into the manager after its operator finalised it."""

    from_address: str | None
    block: BlockContext | None


class Outcome(str, Enum):
    """What a handler did with an event."""

    APPLIED = "applied"
    SKIPPED_MALFORMED = "skipped: malformed event"
    SKIPPED_DUPLICATE = "skipped: already indexed"
    SKIPPED_MISSING_NODE = "skipped: missing parent node"
    SKIPPED_MISSING_MINIPOOL = "skipped: missing minipool"


@dataclass(frozen=True)
class HandlerResult:
    """Result of routing one event through its handler."""

    outcome: Outcome
    entity_id: str | None = None

    @property
    def applied(self) -> bool:
        return self.outcome is Outcome.APPLIED
