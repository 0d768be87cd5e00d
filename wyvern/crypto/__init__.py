"""
Wyvern Crypto Module

Cryptographic primitives used by the exchange protocol:
- secp256k1 keys and signatures (order signing)
- keccak256 hashing
- address derivation and checksums
- ABI selectors and call-data encoding
"""

from .keys import PrivateKey, PublicKey, Signature, generate_keypair
from .signing import (
    sign_message_hash,
    sign_typed_data,
    sign_prefixed_hash,
    typed_data_digest,
    prefixed_digest,
    recover_public_key,
    ecrecover,
)
from .hashing import keccak256, keccak256_hex
from .address import (
    to_checksum_address,
    is_valid_address,
    is_zero_address,
    address_to_bytes,
    public_key_to_address,
    generate_contract_address,
)
from .abi import (
    compute_function_selector,
    encode_function_call,
    decode_function_call,
    encode_args,
    decode_args,
)

__all__ = [
    # Keys
    "PrivateKey",
    "PublicKey",
    "Signature",
    "generate_keypair",
    # Signing
    "sign_message_hash",
    "sign_typed_data",
    "sign_prefixed_hash",
    "typed_data_digest",
    "prefixed_digest",
    "recover_public_key",
    "ecrecover",
    # Hashing
    "keccak256",
    "keccak256_hex",
    # Addresses
    "to_checksum_address",
    "is_valid_address",
    "is_zero_address",
    "address_to_bytes",
    "public_key_to_address",
    "generate_contract_address",
    # ABI
    "compute_function_selector",
    "encode_function_call",
    "decode_function_call",
    "encode_args",
    "decode_args",
]
