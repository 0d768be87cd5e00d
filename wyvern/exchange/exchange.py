"""
Exchange

The deployable exchange. Adds field-level entry points on top of the core so
that clients without the Order/Call types (raw ABI callers, other contracts)
can reach every operation. The core methods stay callable with typed values.
"""

from typing import Sequence, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError

from ..chain.contract import external, view
from ..crypto.address import to_checksum_address
from ..exceptions import ExecutionReverted
from .core import ExchangeCore
from .order import Call, Order

ORDER_FIELDS_SIGNATURE = "address,address,address,bytes4,bytes,uint256,uint256,uint256,uint256"


def _uint_to_address(value: int) -> str:
    if value >= 1 << 160:
        raise ExecutionReverted(f"Value {value} does not fit an address")
    return to_checksum_address(value.to_bytes(20, 'big'))


def _address_to_uint(address: str) -> int:
    return int(to_checksum_address(address), 16)


def pack_atomic_match(
    first_order: Order,
    first_signature: bytes,
    first_call: Call,
    second_order: Order,
    second_signature: bytes,
    second_call: Call,
    metadata: bytes = b'\x00' * 32,
) -> Tuple:
    """
    Flatten a match into the argument layout of `atomic_match_`.

    uints[0..7] carry the first order's registry, maker, static target,
    maximum fill, listing time, expiration time, salt and call target;
    uints[8..15] the same for the second order.
    """
    uints = []
    for order, call in ((first_order, first_call), (second_order, second_call)):
        uints.extend([
            _address_to_uint(order.registry),
            _address_to_uint(order.maker),
            _address_to_uint(order.static_target),
            order.maximum_fill,
            order.listing_time,
            order.expiration_time,
            order.salt,
            _address_to_uint(call.target),
        ])
    return (
        uints,
        [first_order.static_selector, second_order.static_selector],
        first_order.static_extradata,
        first_call.data,
        second_order.static_extradata,
        second_call.data,
        [int(first_call.how_to_call), int(second_call.how_to_call)],
        metadata,
        encode(['bytes', 'bytes'], [first_signature, second_signature]),
    )


class Exchange(ExchangeCore):
    """Exchange with field-level entry points."""

    @view(f"hashOrder_({ORDER_FIELDS_SIGNATURE})")
    def hash_order_(self, registry, maker, static_target, static_selector, static_extradata,
                    maximum_fill, listing_time, expiration_time, salt) -> bytes:
        return self.hash_order(Order(
            registry, maker, static_target, static_selector, static_extradata,
            maximum_fill, listing_time, expiration_time, salt,
        ))

    @view("hashToSign_(bytes32)")
    def hash_to_sign_(self, order_hash: bytes) -> bytes:
        return self.hash_to_sign(order_hash)

    @view(f"validateOrderParameters_({ORDER_FIELDS_SIGNATURE})")
    def validate_order_parameters_(self, registry, maker, static_target, static_selector, static_extradata,
                                   maximum_fill, listing_time, expiration_time, salt) -> bool:
        return self.validate_order_parameters(Order(
            registry, maker, static_target, static_selector, static_extradata,
            maximum_fill, listing_time, expiration_time, salt,
        ))

    @view("validateOrderAuthorization_(bytes32,address,bytes)")
    def validate_order_authorization_(self, order_hash: bytes, maker: str, signature: bytes) -> bool:
        return self.validate_order_authorization(order_hash, maker, signature)

    @external("approveOrderHash_(bytes32)")
    def approve_order_hash_(self, order_hash: bytes) -> None:
        self.approve_order_hash(order_hash)

    @external(f"approveOrder_({ORDER_FIELDS_SIGNATURE},bool)")
    def approve_order_(self, registry, maker, static_target, static_selector, static_extradata,
                       maximum_fill, listing_time, expiration_time, salt,
                       also_approve_authorization: bool) -> None:
        self.approve_order(
            Order(
                registry, maker, static_target, static_selector, static_extradata,
                maximum_fill, listing_time, expiration_time, salt,
            ),
            also_approve_authorization,
        )

    @external("setOrderFill_(bytes32,uint256)")
    def set_order_fill_(self, order_hash: bytes, fill: int) -> None:
        self.set_order_fill(order_hash, fill)

    @external("atomicMatch_(uint256[16],bytes4[2],bytes,bytes,bytes,bytes,uint8[2],bytes32,bytes)", payable=True)
    def atomic_match_(
        self,
        uints: Sequence[int],
        static_selectors: Sequence[bytes],
        first_extradata: bytes,
        first_calldata: bytes,
        second_extradata: bytes,
        second_calldata: bytes,
        how_to_calls: Sequence[int],
        metadata: bytes,
        signatures: bytes,
    ) -> None:
        try:
            first_signature, second_signature = decode(['bytes', 'bytes'], signatures)
        except DecodingError as e:
            raise ExecutionReverted(f"Malformed signatures: {e}")

        first_order = Order(
            _uint_to_address(uints[0]), _uint_to_address(uints[1]), _uint_to_address(uints[2]),
            static_selectors[0], first_extradata, uints[3], uints[4], uints[5], uints[6],
        )
        second_order = Order(
            _uint_to_address(uints[8]), _uint_to_address(uints[9]), _uint_to_address(uints[10]),
            static_selectors[1], second_extradata, uints[11], uints[12], uints[13], uints[14],
        )
        try:
            first_call = Call(_uint_to_address(uints[7]), how_to_calls[0], first_calldata)
            second_call = Call(_uint_to_address(uints[15]), how_to_calls[1], second_calldata)
        except ValueError as e:
            raise ExecutionReverted(f"Invalid call: {e}")

        self.atomic_match(
            first_order, first_signature, first_call,
            second_order, second_signature, second_call,
            metadata,
        )
