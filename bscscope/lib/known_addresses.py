"""
Static labels for well-known BNB Smart Chain addresses.

The table is built once at process start (see tools.create_toolkit) and is
read-only afterwards. Keys are lower-case addresses.
"""

import json
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Union

from .errors import ValidationError
from .validators import is_valid_address

DEFAULT_KNOWN_ADDRESSES: Dict[str, str] = {
    "0x0000000000000000000000000000000000000000": "Burn Address",
    "0x000000000000000000000000000000000000dead": "Burn Address (dEaD)",
    "0x8894e0a0c962cb723c1976a4421c95949be2d4e3": "Binance Hot Wallet",
    "0xf977814e90da44bfa03b6295a0616a897441acec": "Binance Hot Wallet 8",
    "0x28c6c06298d514db089934071355e5743bf21d60": "Binance-Peg Wallet",
    "0xbe0eb53f46cd790cd13851d5eff43d12404d33e8": "Binance Cold Wallet",
    "0x10ed43c718714eb63d5aa57b78b54704e256024e": "PancakeSwap: Router v2",
    "0x13f4ea83d0bd40e75c8222255bc855a974568dd4": "PancakeSwap: Smart Router v3",
    "0x21a31ee1afc51d94c2efccaa2092ad1028285549": "PancakeSwap: Router v2 (legacy)",
}


def load_known_addresses(path: Optional[Union[str, Path]] = None) -> Mapping[str, str]:
    """
    Build the known-address table.

    Args:
        path: Optional JSON file mapping address -> label, merged over the
            built-in table

    Returns:
        Read-only mapping of lower-case address -> label

    Raises:
        ValidationError: If the file is not a JSON object of valid addresses
    """
    table = dict(DEFAULT_KNOWN_ADDRESSES)

    if path is not None:
        with open(path, encoding="utf-8") as f:
            extra = json.load(f)
        if not isinstance(extra, dict):
            raise ValidationError(f"Known address file must contain a JSON object: {path}")
        for address, label in extra.items():
            if not is_valid_address(address):
                raise ValidationError(f"Invalid address in known address file: {address!r}")
            table[address.lower()] = str(label)

    return MappingProxyType(table)


def lookup_label(table: Mapping[str, str], address: str) -> Optional[str]:
    """Return the known label for an address, matching case-insensitively."""
    return table.get(address.lower())
