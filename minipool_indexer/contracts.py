"""Contract interaction functions."""

import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, TypeVar

from minipool_indexer.constants import (
    DEFAULT_READ_RETRIES,
    ROCKET_NETWORK_FEES_ABI,
    ROCKET_NETWORK_FEES_NAME,
    ROCKET_NODE_STAKING_ABI,
    ROCKET_NODE_STAKING_NAME,
    ROCKET_STORAGE_ABI,
)
from minipool_indexer.formatters import as_int
from minipool_indexer.models import RocketPoolContracts

if TYPE_CHECKING:
    from web3 import Web3  # pragma: no cover

T = TypeVar("T")


class ContractReader(Protocol):
    """Synchronous reads against current chain head state."""

    def get_current_network_fee(self) -> int: ...  # pragma: no cover

    def get_node_effective_stake(self, node_address: str) -> int: ...  # pragma: no cover

    def get_node_minimum_stake(self, node_address: str) -> int: ...  # pragma: no cover

    def get_node_maximum_stake(self, node_address: str) -> int: ...  # pragma: no cover


def storage_key(contract_name: str) -> bytes:
    """RocketStorage key for a contract address: keccak256(abi.encodePacked("contract.address", name))."""
    from web3 import Web3  # pylint: disable=import-outside-toplevel

    return bytes(Web3.solidity_keccak(["string", "string"], ["contract.address", contract_name]))


def resolve_rocketpool_contracts(w3: "Web3", storage_address: str) -> RocketPoolContracts:
    """
    Resolve the Rocket Pool contract addresses we read from RocketStorage.

    Rocket Pool upgrades contracts by re-registering them in RocketStorage, so the addresses
    are looked up once at startup instead of being hardcoded.
    """
    storage = w3.eth.contract(
        address=w3.to_checksum_address(storage_address),
        abi=ROCKET_STORAGE_ABI,
    )

    network_fees = storage.functions.getAddress(storage_key(ROCKET_NETWORK_FEES_NAME)).call()
    node_staking = storage.functions.getAddress(storage_key(ROCKET_NODE_STAKING_NAME)).call()

    return RocketPoolContracts(
        storage=storage_address,
        network_fees=network_fees,
        node_staking=node_staking,
    )


def call_with_retries(fn: Callable[[], T], *, retries: int, backoff_s: float = 0.5) -> T:
    """Run a contract call, retrying transient failures. The last error is re-raised."""
    if retries < 1:
        raise ValueError("retries must be >= 1")
    last_err: Exception | None = None
    for attempt in range(retries):
        try:
            return fn()
        except Exception as ex:  # pylint: disable=broad-exception-caught
            last_err = ex
            if attempt + 1 < retries:
                time.sleep(backoff_s * (attempt + 1))
    assert last_err is not None
    raise last_err


class Web3ContractReader:
    """ContractReader backed by web3.py calls at the latest block."""

    def __init__(
        self,
        w3: "Web3",
        contracts: RocketPoolContracts,
        *,
        retries: int = DEFAULT_READ_RETRIES,
        backoff_s: float = 0.5,
    ) -> None:
        self.w3 = w3
        self.retries = retries
        self.backoff_s = backoff_s
        self.network_fees = w3.eth.contract(
            address=w3.to_checksum_address(contracts.network_fees),
            abi=ROCKET_NETWORK_FEES_ABI,
        )
        self.node_staking = w3.eth.contract(
            address=w3.to_checksum_address(contracts.node_staking),
            abi=ROCKET_NODE_STAKING_ABI,
        )

    def _call(self, fn) -> int:
        return as_int(call_with_retries(fn.call, retries=self.retries, backoff_s=self.backoff_s))

    def get_current_network_fee(self) -> int:
        return self._call(self.network_fees.functions.getNodeFee())

    def get_node_effective_stake(self, node_address: str) -> int:
        addr = self.w3.to_checksum_address(node_address)
        return self._call(self.node_staking.functions.getNodeEffectiveRPLStake(addr))

    def get_node_minimum_stake(self, node_address: str) -> int:
        addr = self.w3.to_checksum_address(node_address)
        return self._call(self.node_staking.functions.getNodeMinimumRPLStake(addr))

    def get_node_maximum_stake(self, node_address: str) -> int:
        addr = self.w3.to_checksum_address(node_address)
        return self._call(self.node_staking.functions.getNodeMaximumRPLStake(addr))
