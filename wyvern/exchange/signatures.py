"""
Order signature blobs

An order's signature travels as an opaque byte blob:

  - 96 bytes:  abi.encode(uint8 v, bytes32 r, bytes32 s), an EIP-712
               signature over the order's hash-to-sign
  - 97 bytes:  the same 96 bytes followed by 0x03, a prefixed-message
               (personal_sign) signature over keccak(prefix || "32" || hash-to-sign)

Anything else does not decode, and the order is simply not authorized by it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError

from ..constants import PERSONAL_SIGN_PREFIX, PERSONAL_SIGNATURE_SUFFIX, SIGNATURE_BODY_LENGTH
from ..crypto.keys import PrivateKey, Signature
from ..crypto.signing import ecrecover, prefixed_digest
from ..exceptions import InvalidSignatureError
from ..logger import get_logger

logger = get_logger(__name__)


class SignatureKind(str, Enum):
    TYPED_DATA = "typed_data"
    PREFIXED = "prefixed"


def signed_digest(kind: SignatureKind, hash_to_sign: bytes, prefix: bytes = PERSONAL_SIGN_PREFIX) -> bytes:
    if kind == SignatureKind.PREFIXED:
        return prefixed_digest(prefix, hash_to_sign)
    return hash_to_sign


@dataclass(frozen=True)
class AuthSignature:
    """A decoded signature blob."""
    v: int
    r: bytes
    s: bytes
    kind: SignatureKind = SignatureKind.TYPED_DATA

    @classmethod
    def from_signature(cls, signature: Signature, kind: SignatureKind = SignatureKind.TYPED_DATA) -> "AuthSignature":
        return cls(
            v=signature.eth_v,
            r=signature.r.to_bytes(32, 'big'),
            s=signature.s.to_bytes(32, 'big'),
            kind=kind,
        )

    @classmethod
    def decode(cls, blob: bytes) -> Optional["AuthSignature"]:
        """Decode a signature blob, or return None if it is malformed."""
        if len(blob) == SIGNATURE_BODY_LENGTH:
            kind = SignatureKind.TYPED_DATA
        elif len(blob) == SIGNATURE_BODY_LENGTH + 1 and blob[-1] == PERSONAL_SIGNATURE_SUFFIX:
            kind = SignatureKind.PREFIXED
        else:
            return None
        try:
            v, r, s = decode(['uint8', 'bytes32', 'bytes32'], bytes(blob[:SIGNATURE_BODY_LENGTH]))
        except DecodingError:
            return None
        return cls(v=v, r=r, s=s, kind=kind)

    def encode(self) -> bytes:
        body = encode(['uint8', 'bytes32', 'bytes32'], [self.v, self.r, self.s])
        if self.kind == SignatureKind.PREFIXED:
            return body + bytes([PERSONAL_SIGNATURE_SUFFIX])
        return body

    def signed_digest(self, hash_to_sign: bytes, prefix: bytes = PERSONAL_SIGN_PREFIX) -> bytes:
        """The digest this signature is expected to cover."""
        return signed_digest(self.kind, hash_to_sign, prefix)

    def recover(self, hash_to_sign: bytes, prefix: bytes = PERSONAL_SIGN_PREFIX) -> Optional[str]:
        """Recover the signer's address, or None if the signature is invalid."""
        if self.v not in (27, 28):
            return None
        try:
            return ecrecover(
                self.signed_digest(hash_to_sign, prefix),
                self.v,
                int.from_bytes(self.r, 'big'),
                int.from_bytes(self.s, 'big'),
            )
        except InvalidSignatureError as e:
            logger.debug(f"Signature recovery failed: {e}")
            return None


def sign_order_hash(
    private_key: PrivateKey,
    hash_to_sign: bytes,
    kind: SignatureKind = SignatureKind.TYPED_DATA,
    prefix: bytes = PERSONAL_SIGN_PREFIX,
) -> bytes:
    """
    Produce a signature blob for an order's hash-to-sign.

    Args:
        private_key: Maker's key
        hash_to_sign: Output of the exchange's hash_to_sign
        kind: Typed-data or prefixed-message signature
        prefix: Message prefix for prefixed signatures

    Returns:
        Encoded signature blob
    """
    signature = private_key.sign_msg_hash(signed_digest(kind, hash_to_sign, prefix))
    return AuthSignature.from_signature(signature, kind).encode()
