"""
Generic match predicates

Asset-agnostic predicates that orders can point their static call at. Market
specific rules (prices, token amounts) belong in purpose-built predicate
contracts; these cover the structural checks.
"""

from typing import Tuple

from eth_abi import decode
from eth_abi.exceptions import DecodingError

from ..chain.contract import Contract, view
from ..constants import ZERO_ADDRESS
from ..logger import get_logger
from .order import Call, Order, hash_order
from .predicate import invoke_predicate, predicate

logger = get_logger(__name__)


class StaticValidator(Contract):
    """
    Predicate collection.

    Constructor:
        atomicizer: Address of the Atomicizer deployment orders may batch through
    """

    def constructor(self, atomicizer: str = ZERO_ADDRESS) -> None:
        self.sstore('atomicizer', atomicizer)

    @view("atomicizer()")
    def atomicizer(self) -> str:
        return self.sload('atomicizer', ZERO_ADDRESS)

    @view("test()")
    def test(self) -> None:
        """No-op entry point, usable as a harmless call target."""

    @predicate()
    def any(self, order: Order, counter_order: Order, fill: int, counter_fill: int,
            call: Call, counter_call: Call) -> bool:
        """Accept unconditionally."""
        return True

    @predicate()
    def never(self, order: Order, counter_order: Order, fill: int, counter_fill: int,
              call: Call, counter_call: Call) -> bool:
        return False

    @predicate("anyNoFill")
    def any_no_fill(self, order: Order, counter_order: Order, fill: int, counter_fill: int,
                    call: Call, counter_call: Call) -> bool:
        """Accept only while this order has never been filled."""
        return fill == 0

    @predicate("distinctOrders")
    def distinct_orders(self, order: Order, counter_order: Order, fill: int, counter_fill: int,
                        call: Call, counter_call: Call) -> bool:
        return hash_order(order) != hash_order(counter_order)

    @predicate("exactCounterCall")
    def exact_counter_call(self, order: Order, counter_order: Order, fill: int, counter_fill: int,
                           call: Call, counter_call: Call) -> bool:
        """
        Accept iff the counter call is exactly the one this order's extradata names.

        Extradata: abi.encode(address target, uint8 howToCall, bytes data)
        """
        try:
            target, how_to_call, data = decode(['address', 'uint8', 'bytes'], order.static_extradata)
        except DecodingError:
            return False
        if how_to_call not in (0, 1):
            return False
        return counter_call == Call(target, how_to_call, data)

    @predicate()
    def split(self, order: Order, counter_order: Order, fill: int, counter_fill: int,
              call: Call, counter_call: Call) -> bool:
        """
        Accept iff two sub-predicates both accept.

        Extradata: abi.encode(address[2] targets, bytes4[2] selectors,
        bytes first_extradata, bytes second_extradata). Each sub-predicate
        sees this order with its own target, selector and extradata.
        """
        try:
            targets, selectors, first_extradata, second_extradata = decode(
                ['address[2]', 'bytes4[2]', 'bytes', 'bytes'], order.static_extradata,
            )
        except DecodingError:
            return False

        parts: Tuple[Tuple[str, bytes, bytes], ...] = (
            (targets[0], selectors[0], first_extradata),
            (targets[1], selectors[1], second_extradata),
        )
        for target, selector, extradata in parts:
            sub_order = order.with_fields(
                static_target=target,
                static_selector=selector,
                static_extradata=extradata,
            )
            if not invoke_predicate(
                self.chain, self.address, sub_order, counter_order,
                fill, counter_fill, call, counter_call,
            ):
                return False
        return True
