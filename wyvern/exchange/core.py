"""
Exchange Core

Order hashing, validation, approval, fill accounting and atomic matching.

Fill and approval records are namespaced by the account that wrote them
(`fills[maker][hash]`), so nobody can touch another maker's bookkeeping.
Records are never deleted.

Matching is all-or-nothing: every check runs first, fills are written next,
and only then are the two proxy calls made. Any failure reverts the whole
frame.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Union

from ..chain.contract import Contract, Event, external, view
from ..constants import (
    EIP_1271_MAGIC_VALUE,
    EXCHANGE_NAME,
    EXCHANGE_VERSION,
    PERSONAL_SIGN_PREFIX,
    ZERO_ADDRESS,
    ZERO_HASH,
)
from ..crypto.abi import compute_function_selector
from ..crypto.address import to_checksum_address
from ..exceptions import (
    AlreadyApproved,
    CallFailed,
    CallTargetMissing,
    FillUnchanged,
    InvalidOrderParameters,
    InvalidProxyImplementation,
    MissingProxy,
    OrderUnauthorized,
    PredicateRejected,
    ReentrantCall,
    SelfMatch,
    Unauthorized,
    UnknownRegistry,
)
from ..logger import get_logger
from ..registry.proxy import AuthenticatedProxy, OwnableDelegateProxy
from .order import (
    Call,
    Order,
    domain_separator as compute_domain_separator,
    hash_order as compute_order_hash,
    hash_to_sign as compute_hash_to_sign,
)
from .predicate import invoke_predicate
from .signatures import AuthSignature

logger = get_logger(__name__)


ERC1271_IS_VALID_SIGNATURE = compute_function_selector("isValidSignature(bytes32,bytes)")

OrderLike = Union[Order, tuple]
CallLike = Union[Call, tuple]


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OrderApproved(Event):
    hash: bytes
    maker: str
    order: Optional[Order] = None


@dataclass(frozen=True)
class OrderFillChanged(Event):
    hash: bytes
    maker: str
    new_fill: int


@dataclass(frozen=True)
class OrdersMatched(Event):
    first_hash: bytes
    second_hash: bytes
    first_maker: str
    second_maker: str
    new_first_fill: int
    new_second_fill: int
    matcher: str
    metadata: bytes


# ══════════════════════════════════════════════════════════════════════
#  EXCHANGE CORE
# ══════════════════════════════════════════════════════════════════════

class ExchangeCore(Contract):
    """
    Constructor:
        chain_id: Network identity bound into the signing domain
        registries: Proxy registries whose proxies this exchange may drive
        personal_sign_prefix: Prefix for prefixed-message signatures
    """

    def constructor(
        self,
        chain_id: int,
        registries: Iterable[str],
        personal_sign_prefix: bytes = PERSONAL_SIGN_PREFIX,
    ) -> None:
        self.sstore('chain_id', chain_id)
        self.sstore('personal_sign_prefix', bytes(personal_sign_prefix))
        self.sstore('domain_separator', compute_domain_separator(chain_id, self.address))
        for registry in registries:
            self.sstore(('registry', to_checksum_address(registry)), True)
        logger.info(f"Exchange deployed at {self.address} (chain {chain_id})")

    # ── Read-only lookups ────────────────────────────────────────────

    @view("name()")
    def name(self) -> str:
        return EXCHANGE_NAME

    @view("version()")
    def version(self) -> str:
        return EXCHANGE_VERSION

    @view("chainId()")
    def chain_id(self) -> int:
        return self.sload('chain_id')

    @view("DOMAIN_SEPARATOR()")
    def domain_separator(self) -> bytes:
        return self.sload('domain_separator')

    @view("personalSignPrefix()")
    def personal_sign_prefix(self) -> bytes:
        return self.sload('personal_sign_prefix', PERSONAL_SIGN_PREFIX)

    @view("registries(address)")
    def registries(self, registry: str) -> bool:
        return self.sload(('registry', registry), False)

    @view("fills(address,bytes32)")
    def fills(self, maker: str, order_hash: bytes) -> int:
        return self.sload(('fill', maker, order_hash), 0)

    @view("approved(address,bytes32)")
    def approved(self, maker: str, order_hash: bytes) -> bool:
        return self.sload(('approved', maker, order_hash), False)

    # ── Hashing ──────────────────────────────────────────────────────

    @view()
    def hash_order(self, order: OrderLike) -> bytes:
        return compute_order_hash(Order.coerce(order))

    @view()
    def hash_to_sign(self, order_hash: bytes) -> bytes:
        return compute_hash_to_sign(self.domain_separator(), order_hash)

    # ── Validation (boolean probes, never raise) ─────────────────────

    @view()
    def validate_order_parameters(self, order: OrderLike, order_hash: Optional[bytes] = None) -> bool:
        """
        An order's parameters are valid iff its predicate has code, it is
        within its listing window, and it is not yet filled to its maximum.
        """
        order = Order.coerce(order)
        if order_hash is None:
            order_hash = compute_order_hash(order)

        if not self.chain.exists(order.static_target):
            return False
        if self.now < order.listing_time:
            return False
        if order.expiration_time != 0 and self.now >= order.expiration_time:
            return False
        if self.fills(order.maker, order_hash) >= order.maximum_fill:
            return False
        return True

    @view()
    def validate_order_authorization(self, order_hash: bytes, maker: str, signature: bytes) -> bool:
        """
        True if any of the following authorizes the order:

          1. the maker has a nonzero fill recorded for it (cached authorization)
          2. the maker approved it on-chain
          3. the maker is the caller
          4. the maker is a contract accepting the signature (ERC-1271)
          5. the signature recovers to the maker
        """
        if self.fills(maker, order_hash) > 0:
            return True
        if self.approved(maker, order_hash):
            return True
        if self.chain.in_frame and self.msg.sender == maker:
            return True

        digest = self.hash_to_sign(order_hash)

        if self.chain.exists(maker):
            ok, result = self.chain.try_call(
                lambda: self.static_invoke(maker, ERC1271_IS_VALID_SIGNATURE, digest, bytes(signature))
            )
            return ok and result == EIP_1271_MAGIC_VALUE

        decoded = AuthSignature.decode(bytes(signature))
        if decoded is None:
            return False
        return decoded.recover(digest, self.personal_sign_prefix()) == maker

    # ── Approvals and fills ──────────────────────────────────────────

    def _approve_order_hash(self, order_hash: bytes, order: Optional[Order] = None) -> None:
        maker = self.msg.sender
        if self.approved(maker, order_hash):
            raise AlreadyApproved()
        self.sstore(('approved', maker, order_hash), True)
        self.emit(OrderApproved, hash=order_hash, maker=maker, order=order)
        logger.debug(f"Order 0x{order_hash.hex()} approved by {maker}")

    def _set_order_fill(self, maker: str, order_hash: bytes, fill: int) -> None:
        self.sstore(('fill', maker, order_hash), fill)
        self.emit(OrderFillChanged, hash=order_hash, maker=maker, new_fill=fill)

    @external()
    def approve_order_hash(self, order_hash: bytes) -> None:
        self._approve_order_hash(order_hash)

    @external()
    def approve_order(self, order: OrderLike, also_approve_authorization: bool = False) -> None:
        """
        Approve an order on-chain. Only its maker may do this.

        With `also_approve_authorization`, an untouched order also gets its
        fill bumped to 1 so authorization short-circuits on later checks.
        The bump is skipped when it would fill the order to its maximum;
        the approval alone authorizes it then.
        """
        order = Order.coerce(order)
        if self.msg.sender != order.maker:
            raise Unauthorized("Sender is not the maker of the order and thus not authorized to approve it")
        order_hash = compute_order_hash(order)
        self._approve_order_hash(order_hash, order)
        if (also_approve_authorization and order.maximum_fill > 1
                and self.fills(order.maker, order_hash) == 0):
            self._set_order_fill(order.maker, order_hash, 1)

    @external()
    def set_order_fill(self, order_hash: bytes, fill: int) -> None:
        """Set the caller's fill for an order. Setting it to maximum_fill cancels the order."""
        maker = self.msg.sender
        if self.fills(maker, order_hash) == fill:
            raise FillUnchanged()
        self._set_order_fill(maker, order_hash, fill)
        logger.debug(f"Fill for 0x{order_hash.hex()} by {maker} set to {fill}")

    # ── Matching ─────────────────────────────────────────────────────

    def _execute_call(self, registry: str, maker: str, call: Call) -> bool:
        if not self.registries(registry):
            raise UnknownRegistry()
        if not self.chain.exists(call.target):
            raise CallTargetMissing()

        proxy = self.static_invoke(registry, 'proxies', maker)
        if proxy == ZERO_ADDRESS or not self.chain.exists(proxy):
            raise MissingProxy()

        implementation = self.static_invoke(proxy, OwnableDelegateProxy.selector('implementation'))
        if implementation != self.static_invoke(registry, 'delegate_proxy_implementation'):
            raise InvalidProxyImplementation()

        return self.invoke(
            proxy,
            AuthenticatedProxy.selector('execute'),
            call.target,
            int(call.how_to_call),
            call.data,
        )

    @external(payable=True)
    def atomic_match(
        self,
        first_order: OrderLike,
        first_signature: bytes,
        first_call: CallLike,
        second_order: OrderLike,
        second_signature: bytes,
        second_call: CallLike,
        metadata: bytes = ZERO_HASH,
    ) -> None:
        """
        Settle two orders against each other.

        Raises:
            ReentrantCall: A match is already executing
            InvalidOrderParameters: Either order is outside its window, exhausted, or has no predicate
            OrderUnauthorized: Either order is not authorized
            SelfMatch: Both orders are the same order
            PredicateRejected: Either predicate rejected the match
            CallFailed: Either proxy call failed
        """
        if self.sload('match_lock', False):
            raise ReentrantCall()
        self.sstore('match_lock', True)

        first_order = Order.coerce(first_order)
        second_order = Order.coerce(second_order)
        first_call = Call.coerce(first_call)
        second_call = Call.coerce(second_call)

        first_hash = compute_order_hash(first_order)
        if not self.validate_order_parameters(first_order, first_hash):
            raise InvalidOrderParameters("First order has invalid parameters")
        second_hash = compute_order_hash(second_order)
        if not self.validate_order_parameters(second_order, second_hash):
            raise InvalidOrderParameters("Second order has invalid parameters")

        if not self.validate_order_authorization(first_hash, first_order.maker, first_signature):
            raise OrderUnauthorized("First order failed authorization")
        if not self.validate_order_authorization(second_hash, second_order.maker, second_signature):
            raise OrderUnauthorized("Second order failed authorization")

        if first_hash == second_hash:
            raise SelfMatch()

        previous_first_fill = self.fills(first_order.maker, first_hash)
        previous_second_fill = self.fills(second_order.maker, second_hash)

        if not invoke_predicate(
            self.chain, self.address, first_order, second_order,
            previous_first_fill, previous_second_fill, first_call, second_call,
        ):
            raise PredicateRejected("First order static call failed")
        if not invoke_predicate(
            self.chain, self.address, second_order, first_order,
            previous_second_fill, previous_first_fill, second_call, first_call,
        ):
            raise PredicateRejected("Second order static call failed")

        # Fills are final before any external call runs
        new_first_fill = previous_first_fill + 1
        new_second_fill = previous_second_fill + 1
        self._set_order_fill(first_order.maker, first_hash, new_first_fill)
        self._set_order_fill(second_order.maker, second_hash, new_second_fill)

        if self.msg.value > 0:
            self.send_value(first_order.maker, self.msg.value)

        if not self._execute_call(first_order.registry, first_order.maker, first_call):
            raise CallFailed("First call failed")
        if not self._execute_call(second_order.registry, second_order.maker, second_call):
            raise CallFailed("Second call failed")

        self.emit(
            OrdersMatched,
            first_hash=first_hash,
            second_hash=second_hash,
            first_maker=first_order.maker,
            second_maker=second_order.maker,
            new_first_fill=new_first_fill,
            new_second_fill=new_second_fill,
            matcher=self.msg.sender,
            metadata=bytes(metadata),
        )
        logger.info(
            f"Matched 0x{first_hash.hex()} ({first_order.maker}) with "
            f"0x{second_hash.hex()} ({second_order.maker})"
        )

        self.sstore('match_lock', None)
