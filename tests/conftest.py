import pytest

from minipool_indexer.models import BlockContext, MinipoolCreated, NodeRegistered
from minipool_indexer.router import Indexer
from minipool_indexer.store import InMemoryEntityStore
from minipool_indexer.tracking import AddressRegistry

NODE = "0x00000000000000000000000000000000000000aa"
OTHER_NODE = "0x00000000000000000000000000000000000000bb"


def minipool_address(n: int) -> str:
    return f"0x{n:040x}"


def block(ts: int = 1_700_000_000, number: int = 1, log_index: int = 0) -> BlockContext:
    return BlockContext(block_number=number, block_timestamp=ts, log_index=log_index)


class FakeContractReader:
    """Substitutes for web3 reads: fee and stakes are plain attributes, reads are counted."""

    def __init__(self, fee: int = 0) -> None:
        self.fee = fee
        self.effective: dict[str, int] = {}
        self.minimum: dict[str, int] = {}
        self.maximum: dict[str, int] = {}
        self.fail_fee = False
        self.fail_stake = False
        self.calls: list[str] = []

    def get_current_network_fee(self) -> int:
        self.calls.append("fee")
        if self.fail_fee:
            raise ConnectionError("fee read failed")
        return self.fee

    def get_node_effective_stake(self, node_address: str) -> int:
        self.calls.append("effective")
        if self.fail_stake:
            raise ConnectionError("stake read failed")
        return self.effective.get(node_address, 0)

    def get_node_minimum_stake(self, node_address: str) -> int:
        self.calls.append("minimum")
        return self.minimum.get(node_address, 0)

    def get_node_maximum_stake(self, node_address: str) -> int:
        self.calls.append("maximum")
        return self.maximum.get(node_address, 0)


@pytest.fixture
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def reader() -> FakeContractReader:
    return FakeContractReader()


@pytest.fixture
def registry() -> AddressRegistry:
    return AddressRegistry()


@pytest.fixture
def indexer(store, reader, registry) -> Indexer:
    idx = Indexer(store, reader, registry)
    idx.process(NodeRegistered(node=NODE, block=block(1_600_000_000)))
    return idx


def create_with_fee(indexer: Indexer, reader: FakeContractReader, n: int, fee: int, node: str = NODE):
    reader.fee = fee
    return indexer.process(MinipoolCreated(node=node, minipool=minipool_address(n), block=block()))
