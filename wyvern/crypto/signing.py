"""
Wyvern Crypto Signing Module

Order signing and signer recovery using secp256k1. Two digest forms are
supported, matching the two auth-blob kinds the exchange accepts:

- EIP-712 typed data: keccak(0x1901 || domainSeparator || structHash)
- Prefixed message:   keccak(prefix || "32" || hash)
"""

from .hashing import keccak256
from .keys import PrivateKey, PublicKey, Signature


def typed_data_digest(domain_separator: bytes, struct_hash: bytes) -> bytes:
    """EIP-712 digest of a struct hash under a domain."""
    return keccak256(b'\x19\x01' + domain_separator + struct_hash)


def prefixed_digest(prefix: bytes, msg_hash: bytes) -> bytes:
    """
    Digest of a 32-byte hash signed as a personal message.

    The decimal length is always "32" since only hashes are signed this way.
    """
    return keccak256(prefix + str(len(msg_hash)).encode() + msg_hash)


def sign_message_hash(private_key: PrivateKey, msg_hash: bytes) -> Signature:
    """
    Sign a 32-byte message hash.

    Args:
        private_key: PrivateKey to sign with
        msg_hash: 32-byte hash to sign

    Returns:
        Signature
    """
    return private_key.sign_msg_hash(msg_hash)


def sign_typed_data(private_key: PrivateKey, domain_separator: bytes, struct_hash: bytes) -> Signature:
    """
    Sign typed data (EIP-712 style).

    Args:
        private_key: PrivateKey to sign with
        domain_separator: EIP-712 domain separator
        struct_hash: Hash of the struct to sign

    Returns:
        Signature
    """
    return private_key.sign_msg_hash(typed_data_digest(domain_separator, struct_hash))


def sign_prefixed_hash(private_key: PrivateKey, prefix: bytes, msg_hash: bytes) -> Signature:
    """
    Sign a hash the way wallets do for personal_sign.

    Args:
        private_key: PrivateKey to sign with
        prefix: Message prefix, normally b"\\x19Ethereum Signed Message:\\n"
        msg_hash: 32-byte hash being signed

    Returns:
        Signature
    """
    return private_key.sign_msg_hash(prefixed_digest(prefix, msg_hash))


def recover_public_key(msg_hash: bytes, signature: Signature) -> PublicKey:
    """Recover public key from signature."""
    return PublicKey.recover_from_msg_hash(msg_hash, signature)


def ecrecover(msg_hash: bytes, v: int, r: int, s: int) -> str:
    """
    Recover signer address from signature components.

    This mirrors the Solidity ecrecover() function.

    Args:
        msg_hash: 32-byte message hash
        v: Recovery parameter (27 or 28)
        r: R component
        s: S component

    Returns:
        Recovered address (0x prefixed)

    Raises:
        InvalidSignatureError: If the components do not recover a key
    """
    signature = Signature.from_vrs(v, r, s)
    return recover_public_key(msg_hash, signature).to_address()
