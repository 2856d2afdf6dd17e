"""Constants and configuration for the minipool indexer."""

# RocketStorage is the single entry point for resolving all Rocket Pool contract addresses.
# Use --storage to override for testnets.
ROCKET_STORAGE_MAINNET = "0x1d8f8f00cfa6758d7bE78336684788Fb0ee0Fa46"

# Contract names as registered in RocketStorage under keccak256("contract.address" + name).
ROCKET_NETWORK_FEES_NAME = "rocketNetworkFees"
ROCKET_NODE_STAKING_NAME = "rocketNodeStaking"

# Minimal ABI for RocketStorage - only the address lookup we need.
ROCKET_STORAGE_ABI: list[dict] = [
    {
        "type": "function",
        "name": "getAddress",
        "stateMutability": "view",
        "inputs": [{"name": "_key", "type": "bytes32"}],
        "outputs": [{"name": "r", "type": "address"}],
    },
]

# Minimal ABI for RocketNetworkFees - the fee a new minipool is minted with.
ROCKET_NETWORK_FEES_ABI: list[dict] = [
    {
        "type": "function",
        "name": "getNodeFee",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

# Minimal ABI for RocketNodeStaking - effective RPL stake and its bounds per node.
ROCKET_NODE_STAKING_ABI: list[dict] = [
    {
        "type": "function",
        "name": "getNodeEffectiveRPLStake",
        "stateMutability": "view",
        "inputs": [{"name": "_nodeAddress", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "getNodeMinimumRPLStake",
        "stateMutability": "view",
        "inputs": [{"name": "_nodeAddress", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "getNodeMaximumRPLStake",
        "stateMutability": "view",
        "inputs": [{"name": "_nodeAddress", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

# Entity kinds as used by the entity store.
NODE_KIND = "Node"
MINIPOOL_KIND = "Minipool"

# Event record kinds accepted by the replay surface.
NODE_REGISTERED = "node_registered"
MINIPOOL_CREATED = "minipool_created"
MINIPOOL_DESTROYED = "minipool_destroyed"
FINALISED_MINIPOOL_COUNT_INCREMENTED = "finalised_minipool_count_incremented"

# Fees and RPL amounts are 1e18 fixed point on-chain.
FIXED_POINT_SCALE = 10**18

# Contract reads against the head are retried this many times before the error propagates.
DEFAULT_READ_RETRIES = 3
DEFAULT_RPC_TIMEOUT = 30

# Store configuration
STORE_DIR_NAME = ".minipool_indexer"
STORE_VERSION = "1"  # Increment to invalidate all stored entities
TRACKED_ADDRESSES_FILE = "tracked.json"
CHECKPOINT_FILE = "checkpoint.json"
