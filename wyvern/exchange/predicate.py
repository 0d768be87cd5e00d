"""
Match predicates

A predicate ("static call") is a read-only contract method that decides
whether two orders may settle against each other with the two calls about
to be executed.

Predicates are registered with @predicate and addressed from an order by
(static_target, static_selector). The exchange reaches them only through a
static call, so a predicate cannot change state.
"""

from typing import Callable, Optional, Protocol

from ..chain.contract import AbiEntry
from ..constants import PREDICATE_SIGNATURE_ARGS
from ..crypto.abi import compute_function_selector
from ..logger import get_logger
from .order import Call, Order

logger = get_logger(__name__)


class StaticPredicate(Protocol):
    """
    Call/response contract every predicate satisfies.

    Contracts exposing a single predicate usually name it `validate`;
    collections register several under their own names.
    """

    def validate(
        self,
        order: Order,
        counter_order: Order,
        fill: int,
        counter_fill: int,
        call: Call,
        counter_call: Call,
    ) -> bool: ...


def predicate_signature(name: str) -> str:
    return name + PREDICATE_SIGNATURE_ARGS


def predicate_selector(name: str) -> bytes:
    """Selector an order must carry to address the predicate `name`."""
    return compute_function_selector(predicate_signature(name))


def predicate(name: Optional[str] = None) -> Callable:
    """
    Register a contract method as a match predicate.

    The method is reachable only through typed calls; its selector follows
    the canonical predicate signature so orders can address it.

    Args:
        name: Predicate name used for the selector (defaults to the method name)
    """
    def decorator(fn):
        signature = predicate_signature(name or fn.__name__)
        fn.__wyvern_abi__ = AbiEntry(
            attr=fn.__name__,
            signature=signature,
            selector=compute_function_selector(signature),
            input_types=(),
            read_only=True,
            typed_only=True,
        )
        return fn
    return decorator


def invoke_predicate(
    chain,
    caller: str,
    order: Order,
    counter_order: Order,
    fill: int,
    counter_fill: int,
    call: Call,
    counter_call: Call,
) -> bool:
    """
    Ask `order`'s predicate whether the match may proceed.

    Any result other than a literal True is a rejection. Exceptions raised by
    the predicate (including attempts to modify state) propagate as hard
    failures.
    """
    result = chain.static_invoke(
        caller,
        order.static_target,
        order.static_selector,
        order,
        counter_order,
        fill,
        counter_fill,
        call,
        counter_call,
    )
    if result is not True:
        logger.debug(
            f"Predicate 0x{order.static_selector.hex()} at {order.static_target} "
            f"rejected match for maker {order.maker} (result={result!r})"
        )
        return False
    return True
