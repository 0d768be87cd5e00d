"""
Orders and Calls

The order record makers sign, its canonical EIP-712 hash, and the call
record each side of a match executes through its proxy.
"""

from dataclasses import astuple, dataclass, replace
from typing import Any, Dict, Sequence, Union

from eth_abi import encode

from ..constants import EIP712_DOMAIN_TYPE, EXCHANGE_NAME, EXCHANGE_VERSION, ORDER_TYPE
from ..crypto.address import to_checksum_address
from ..crypto.hashing import keccak256
from ..registry.proxy import HowToCall


ORDER_TYPEHASH = keccak256(ORDER_TYPE.encode())
DOMAIN_TYPEHASH = keccak256(EIP712_DOMAIN_TYPE.encode())


@dataclass(frozen=True)
class Order:
    """
    A maker's signed intent.

    Attributes:
        registry: Registry holding the maker's proxy
        maker: Order maker
        static_target: Predicate contract
        static_selector: 4-byte selector of the predicate method
        static_extradata: Opaque bytes handed to the predicate
        maximum_fill: Fill at which the order is exhausted
        listing_time: Order is valid from this timestamp
        expiration_time: Order is valid until this timestamp (0 = never expires)
        salt: Disambiguates otherwise identical orders
    """
    registry: str
    maker: str
    static_target: str
    static_selector: bytes
    static_extradata: bytes
    maximum_fill: int
    listing_time: int
    expiration_time: int
    salt: int

    def __post_init__(self):
        object.__setattr__(self, 'registry', to_checksum_address(self.registry))
        object.__setattr__(self, 'maker', to_checksum_address(self.maker))
        object.__setattr__(self, 'static_target', to_checksum_address(self.static_target))
        if len(self.static_selector) != 4:
            raise ValueError(f"Static selector must be 4 bytes, got {len(self.static_selector)}")
        object.__setattr__(self, 'static_selector', bytes(self.static_selector))
        object.__setattr__(self, 'static_extradata', bytes(self.static_extradata))
        for name in ('maximum_fill', 'listing_time', 'expiration_time', 'salt'):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")

    @classmethod
    def coerce(cls, value: Union["Order", Sequence[Any]]) -> "Order":
        """Accept an Order or its field tuple (as decoded from call data)."""
        if isinstance(value, cls):
            return value
        return cls(*value)

    def as_tuple(self) -> tuple:
        return astuple(self)

    def with_fields(self, **changes) -> "Order":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "registry": self.registry,
            "maker": self.maker,
            "staticTarget": self.static_target,
            "staticSelector": '0x' + self.static_selector.hex(),
            "staticExtradata": '0x' + self.static_extradata.hex(),
            "maximumFill": self.maximum_fill,
            "listingTime": self.listing_time,
            "expirationTime": self.expiration_time,
            "salt": self.salt,
        }


@dataclass(frozen=True)
class Call:
    """
    One side's call, executed through the maker's proxy.

    Attributes:
        target: Call target
        how_to_call: CALL or DELEGATE_CALL
        data: Opaque call data
    """
    target: str
    how_to_call: HowToCall
    data: bytes

    def __post_init__(self):
        object.__setattr__(self, 'target', to_checksum_address(self.target))
        object.__setattr__(self, 'how_to_call', HowToCall(self.how_to_call))
        object.__setattr__(self, 'data', bytes(self.data))

    @classmethod
    def coerce(cls, value: Union["Call", Sequence[Any]]) -> "Call":
        if isinstance(value, cls):
            return value
        return cls(*value)

    def as_tuple(self) -> tuple:
        return (self.target, int(self.how_to_call), self.data)


# ══════════════════════════════════════════════════════════════════════
#  HASHING
# ══════════════════════════════════════════════════════════════════════

def hash_order(order: Order) -> bytes:
    """
    EIP-712 struct hash of an order.

    Pure function of the order's fields: equal fields give equal hashes.
    """
    return keccak256(encode(
        ['bytes32', 'address', 'address', 'address', 'bytes4', 'bytes32',
         'uint256', 'uint256', 'uint256', 'uint256'],
        [
            ORDER_TYPEHASH,
            order.registry,
            order.maker,
            order.static_target,
            order.static_selector,
            keccak256(order.static_extradata),
            order.maximum_fill,
            order.listing_time,
            order.expiration_time,
            order.salt,
        ],
    ))


def domain_separator(
    chain_id: int,
    verifying_contract: str,
    name: str = EXCHANGE_NAME,
    version: str = EXCHANGE_VERSION,
) -> bytes:
    """EIP-712 domain separator binding signatures to one exchange deployment."""
    return keccak256(encode(
        ['bytes32', 'bytes32', 'bytes32', 'uint256', 'address'],
        [
            DOMAIN_TYPEHASH,
            keccak256(name.encode()),
            keccak256(version.encode()),
            chain_id,
            to_checksum_address(verifying_contract),
        ],
    ))


def hash_to_sign(separator: bytes, order_hash: bytes) -> bytes:
    """Digest a maker signs: keccak(0x1901 || domain separator || order hash)."""
    return keccak256(b'\x19\x01' + separator + order_hash)


def order_typed_data(
    order: Order,
    chain_id: int,
    verifying_contract: str,
    name: str = EXCHANGE_NAME,
    version: str = EXCHANGE_VERSION,
) -> Dict[str, Any]:
    """
    Full EIP-712 payload for an order, as wallets and signing tools take it.
    """
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Order": [
                {"name": "registry", "type": "address"},
                {"name": "maker", "type": "address"},
                {"name": "staticTarget", "type": "address"},
                {"name": "staticSelector", "type": "bytes4"},
                {"name": "staticExtradata", "type": "bytes"},
                {"name": "maximumFill", "type": "uint256"},
                {"name": "listingTime", "type": "uint256"},
                {"name": "expirationTime", "type": "uint256"},
                {"name": "salt", "type": "uint256"},
            ],
        },
        "primaryType": "Order",
        "domain": {
            "name": name,
            "version": version,
            "chainId": chain_id,
            "verifyingContract": to_checksum_address(verifying_contract),
        },
        "message": order.to_dict(),
    }
