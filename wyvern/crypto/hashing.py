"""
Wyvern Crypto Hashing Module

Keccak-256, the hash behind selectors, addresses, order hashes and the
EIP-712 signing digest.
"""

from typing import Union

from eth_utils import keccak as _keccak


def keccak256(data: Union[bytes, str]) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum standard).

    Args:
        data: Input bytes or hex string

    Returns:
        32-byte hash
    """
    if isinstance(data, str):
        if data.startswith('0x') or data.startswith('0X'):
            data = bytes.fromhex(data[2:])
        else:
            data = bytes.fromhex(data)
    return _keccak(data)


def keccak256_hex(data: Union[bytes, str]) -> str:
    """Compute Keccak-256 hash and return as 0x-prefixed hex."""
    return '0x' + keccak256(data).hex()
