"""Formatting and conversion utilities."""

from decimal import Decimal

from minipool_indexer.constants import FIXED_POINT_SCALE


def as_int(value, *, default: int = 0) -> int:
    """Convert value to int, handling various types."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        v = value.strip()
        if v.startswith("0x"):
            return int(v, 16)
        return int(v)
    return int(value)


def normalize_address(value) -> str:
    """Normalize an address to the lowercase 0x-prefixed form used as entity id."""
    if isinstance(value, (bytes, bytearray)):
        return f"0x{value.hex()}"
    if hasattr(value, "hex") and not isinstance(value, str):
        hex_str = value.hex()
        hex_str = hex_str if hex_str.startswith("0x") else f"0x{hex_str}"
        return hex_str.lower()
    s = str(value).strip().lower()
    if s.startswith("0x"):
        return s
    return f"0x{s}"


def parse_address(value) -> str | None:
    """Normalize an address, or return None if the value is not a 20-byte address."""
    from web3 import Web3  # pylint: disable=import-outside-toplevel

    if value is None or value == "":
        return None
    address = normalize_address(value)
    # Lowercased first so that ids are accepted regardless of checksum casing.
    if not Web3.is_address(address):
        return None
    return address


def format_fee(fee: int, *, decimals: int = 2) -> str:
    """Format a 1e18 fixed point fee as a percentage."""
    pct = Decimal(fee) * 100 / Decimal(FIXED_POINT_SCALE)
    return f"{pct:.{decimals}f}%"


def format_rpl(value: int, *, decimals: int = 4) -> str:
    """Format a 1e18 fixed point RPL amount."""
    rpl = Decimal(value) / Decimal(FIXED_POINT_SCALE)
    s = f"{rpl:.{decimals}f}".rstrip("0").rstrip(".")
    return f"{s} RPL"


def short_address(address: str) -> str:
    """Shorten an address for console output."""
    if len(address) <= 16:
        return address
    return f"{address[:10]}...{address[-6:]}"
