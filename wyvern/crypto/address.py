"""
Wyvern Crypto Address Module

Ethereum-style 20-byte addresses with EIP-55 checksums, plus CREATE
address derivation for contracts deployed on the ledger.
"""

from typing import Union

import rlp
from eth_utils import (
    is_address,
    is_checksum_address,
    to_checksum_address as _to_checksum_address,
)

from ..constants import ZERO_ADDRESS
from ..exceptions import InvalidAddressError
from .hashing import keccak256


AddressLike = Union[str, bytes]


def to_checksum_address(address: AddressLike) -> str:
    """
    Convert an address to EIP-55 checksum format.

    Args:
        address: Hex address (with or without 0x prefix) or 20 raw bytes

    Returns:
        Checksum address with 0x prefix

    Raises:
        InvalidAddressError: If the value is not a 20-byte address
    """
    if isinstance(address, bytes):
        if len(address) != 20:
            raise InvalidAddressError(f"Address must be 20 bytes, got {len(address)}")
        address = '0x' + address.hex()
    if not isinstance(address, str):
        raise InvalidAddressError(f"Invalid address type: {type(address)}")
    if not address.startswith(('0x', '0X')):
        address = '0x' + address
    if not is_address(address.lower()):
        raise InvalidAddressError(f"Invalid address: {address}")
    return _to_checksum_address(address.lower())


def is_valid_address(address: str) -> bool:
    """
    Check that a string is a well-formed address.

    Mixed-case input must carry a correct checksum.
    """
    if not isinstance(address, str) or not address.startswith('0x'):
        return False
    body = address[2:]
    if len(body) != 40:
        return False
    if body.islower() or body.isupper() or body.isdigit():
        return is_address(address.lower())
    return is_checksum_address(address)


def is_zero_address(address: AddressLike) -> bool:
    if isinstance(address, bytes):
        return address == b'\x00' * 20
    return address.lower() == ZERO_ADDRESS


def address_to_bytes(address: AddressLike) -> bytes:
    if isinstance(address, bytes):
        return address
    return bytes.fromhex(to_checksum_address(address)[2:])


def public_key_to_address(public_key) -> str:
    """
    Derive address from public key: last 20 bytes of keccak256(pubkey).

    Args:
        public_key: PublicKey instance or 64/65 raw bytes

    Returns:
        Checksum address
    """
    pub_bytes = public_key.to_bytes() if hasattr(public_key, 'to_bytes') else public_key

    if len(pub_bytes) == 65 and pub_bytes[0] == 0x04:
        pub_bytes = pub_bytes[1:]
    if len(pub_bytes) != 64:
        raise ValueError(f"secp256k1 public key must be 64 bytes, got {len(pub_bytes)}")

    return to_checksum_address(keccak256(pub_bytes)[-20:])


def generate_contract_address(sender: AddressLike, nonce: int) -> str:
    """
    Generate contract address using CREATE opcode logic.

    Address = keccak256(rlp([sender, nonce]))[-20:]

    Args:
        sender: Deployer address
        nonce: Deployer nonce at deployment time

    Returns:
        Contract address (checksum format)
    """
    encoded = rlp.encode([address_to_bytes(sender), nonce])
    return to_checksum_address(keccak256(encoded)[-20:])
