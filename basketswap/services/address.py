"""Helpers for validating and normalizing EVM addresses and hex quantities."""

from __future__ import annotations

import re
from typing import Any, Optional

_EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_HEX_DATA_RE = re.compile(r"^0x([a-fA-F0-9]{2})*$")


def is_valid_evm_address(address: Optional[str]) -> bool:
    if not address or not isinstance(address, str):
        return False
    return bool(_EVM_ADDRESS_RE.fullmatch(address))


def normalize_address(address: str) -> str:
    """Lower-case an address after checking it is a well-formed 20-byte hex id."""

    if not is_valid_evm_address(address):
        raise ValueError(f"Invalid EVM address: {address!r}")
    return address.lower()


def is_hex_data(data: Optional[str]) -> bool:
    if not data or not isinstance(data, str):
        return False
    return bool(_HEX_DATA_RE.fullmatch(data))


def parse_quantity(value: Any) -> Optional[int]:
    """Parse an API or RPC quantity.

    Accepts ints, decimal strings and ``0x`` prefixed hex strings. Returns
    ``None`` for missing or empty values so callers can tell "absent" from 0.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"Quantity must be integral: {value!r}")
        return int(value)
    text = str(value).strip()
    if not text:
        return None
    if text.lower().startswith("0x"):
        return int(text[2:] or "0", 16)
    return int(text)


__all__ = [
    "is_valid_evm_address",
    "normalize_address",
    "is_hex_data",
    "parse_quantity",
]
