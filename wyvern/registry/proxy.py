"""
Authenticated Proxies

Per-user proxies that hold a user's assets and execute calls for them.

  - AuthenticatedProxy: the implementation code. Executes calls for its
    user, or for any contract the registry has authenticated, unless the
    user has revoked that access.
  - OwnableDelegateProxy: the per-user wrapper deployed by the registry.
    Owns the storage, forwards every unknown selector to the current
    implementation and can be upgraded by its owner.

Both classes operate on the same storage (the wrapper's), so their keys are
defined once here.
"""

from dataclasses import dataclass
from enum import IntEnum

from ..chain.contract import Contract, Event, external, view
from ..constants import PROXY_TYPE, ZERO_ADDRESS
from ..crypto.abi import encode_function_call
from ..exceptions import (
    AlreadyInitialized,
    CallFailed,
    ExecutionReverted,
    SameImplementation,
    TokenTransferFailed,
    Unauthorized,
)
from ..logger import get_logger

logger = get_logger(__name__)


# Storage layout shared by the wrapper and the implementation
USER_KEY = 'proxy.user'
REGISTRY_KEY = 'proxy.registry'
REVOKED_KEY = 'proxy.revoked'
INITIALIZED_KEY = 'proxy.initialized'
UPGRADEABILITY_OWNER_KEY = 'upgradeable.owner'
IMPLEMENTATION_KEY = 'upgradeable.implementation'


class HowToCall(IntEnum):
    """How a proxy reaches its call target."""
    CALL = 0
    DELEGATE_CALL = 1


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Revoked(Event):
    revoked: bool


@dataclass(frozen=True)
class ReceivedEther(Event):
    sender: str
    amount: int


@dataclass(frozen=True)
class ReceivedTokens(Event):
    sender: str
    value: int
    token: str
    extra_data: bytes


@dataclass(frozen=True)
class Upgraded(Event):
    implementation: str


@dataclass(frozen=True)
class ProxyOwnershipTransferred(Event):
    previous_owner: str
    new_owner: str


# ══════════════════════════════════════════════════════════════════════
#  IMPLEMENTATION
# ══════════════════════════════════════════════════════════════════════

class AuthenticatedProxy(Contract):
    """
    Proxy implementation driven by its user or by registry-authenticated callers.

    The gate for `execute` passes iff the caller is the user, or the user has
    not revoked access and the registry reports the caller as authenticated.
    """

    @external("initialize(address,address)")
    def initialize(self, user: str, registry: str) -> None:
        if self.sload(INITIALIZED_KEY, False):
            raise AlreadyInitialized("Authenticated proxy already initialized")
        self.sstore(INITIALIZED_KEY, True)
        self.sstore(USER_KEY, user)
        self.sstore(REGISTRY_KEY, registry)

    @view("user()")
    def user(self) -> str:
        return self.sload(USER_KEY, ZERO_ADDRESS)

    @view("registry()")
    def registry(self) -> str:
        return self.sload(REGISTRY_KEY, ZERO_ADDRESS)

    @view("revoked()")
    def revoked(self) -> bool:
        return self.sload(REVOKED_KEY, False)

    @external("setRevoke(bool)")
    def set_revoke(self, revoke: bool) -> None:
        """Revoke (or restore) the registry's access to this proxy."""
        if self.msg.sender != self.user():
            raise Unauthorized("Authenticated proxy can only be revoked by its user")
        self.sstore(REVOKED_KEY, bool(revoke))
        self.emit(Revoked, revoked=bool(revoke))
        logger.info(f"Proxy {self.address} access {'revoked' if revoke else 'restored'} by {self.user()}")

    def _authorize_caller(self) -> None:
        sender = self.msg.sender
        if sender == self.user():
            return
        if not self.revoked() and self.static_invoke(self.registry(), 'contracts', sender):
            return
        raise Unauthorized(
            "Authenticated proxy can only be called by its user, or by a contract "
            "authorized by the registry as long as the user has not revoked access"
        )

    @external("proxy(address,uint8,bytes)")
    def execute(self, dest: str, how_to_call: int, data: bytes) -> bool:
        """
        Execute a call from this proxy.

        Args:
            dest: Call target
            how_to_call: HowToCall.CALL or HowToCall.DELEGATE_CALL
            data: Call data, passed through opaquely

        Returns:
            True if the inner call succeeded. A reverted inner call returns
            False and leaves no effects.
        """
        self._authorize_caller()
        try:
            how = HowToCall(how_to_call)
        except ValueError:
            raise ExecutionReverted(f"Invalid call type: {how_to_call}")

        if how == HowToCall.CALL:
            ok, _ = self.chain.try_call(lambda: self.call(dest, data))
        else:
            ok, _ = self.chain.try_call(lambda: self.chain.delegate_call(dest, data))
        return ok

    @external("proxyAssert(address,uint8,bytes)")
    def execute_assert(self, dest: str, how_to_call: int, data: bytes) -> None:
        if not self.execute(dest, how_to_call, data):
            raise CallFailed("Proxy assertion failed")

    @external("receiveApproval(address,uint256,address,bytes)")
    def receive_approval(self, sender: str, value: int, token: str, extra_data: bytes) -> None:
        """Pull `value` pre-approved tokens from `sender` into this proxy."""
        call_data = encode_function_call("transferFrom(address,address,uint256)", sender, self.address, value)
        if not self.call(token, call_data):
            raise TokenTransferFailed()
        self.emit(ReceivedTokens, sender=sender, value=value, token=token, extra_data=extra_data)

    def receive(self) -> None:
        self.emit(ReceivedEther, sender=self.msg.sender, amount=self.msg.value)


# ══════════════════════════════════════════════════════════════════════
#  PER-USER WRAPPER
# ══════════════════════════════════════════════════════════════════════

class OwnableDelegateProxy(Contract):
    """
    Upgradeable wrapper holding a user's proxy storage.

    Constructor:
        owner: Upgradeability owner (the user)
        initial_implementation: Implementation code address
        calldata: Initialization call, delegate-called into the implementation
    """

    def constructor(self, owner: str, initial_implementation: str, calldata: bytes) -> None:
        self.sstore(UPGRADEABILITY_OWNER_KEY, owner)
        self._upgrade_to(initial_implementation)
        self.chain.delegate_call(initial_implementation, calldata)

    @view("implementation()")
    def implementation(self) -> str:
        return self.sload(IMPLEMENTATION_KEY, ZERO_ADDRESS)

    @view("proxyOwner()")
    def proxy_owner(self) -> str:
        return self.sload(UPGRADEABILITY_OWNER_KEY, ZERO_ADDRESS)

    @view("proxyType()")
    def proxy_type(self) -> int:
        return PROXY_TYPE

    def _only_proxy_owner(self) -> None:
        if self.msg.sender != self.proxy_owner():
            raise Unauthorized("Only the proxy owner can call this method")

    def _upgrade_to(self, implementation: str) -> None:
        if implementation == self.implementation():
            raise SameImplementation()
        self.sstore(IMPLEMENTATION_KEY, implementation)
        self.emit(Upgraded, implementation=implementation)

    @external("upgradeTo(address)")
    def upgrade_to(self, implementation: str) -> None:
        self._only_proxy_owner()
        self._upgrade_to(implementation)
        logger.info(f"Proxy {self.address} upgraded to {implementation}")

    @external("upgradeToAndCall(address,bytes)", payable=True)
    def upgrade_to_and_call(self, implementation: str, data: bytes) -> None:
        self.upgrade_to(implementation)
        self.chain.delegate_call(self.address, data)

    @external("transferProxyOwnership(address)")
    def transfer_ownership(self, new_owner: str) -> None:
        """
        Hand the proxy to a new owner.

        Moves the registry directory entry first, then updates both the
        upgradeability owner and the implementation's user.
        """
        self._only_proxy_owner()
        if new_owner == ZERO_ADDRESS:
            raise ExecutionReverted("New owner cannot be the null address")

        previous = self.proxy_owner()
        self.invoke(self.sload(REGISTRY_KEY), 'transfer_access_to', previous, new_owner)
        self.sstore(USER_KEY, new_owner)
        self.sstore(UPGRADEABILITY_OWNER_KEY, new_owner)
        self.emit(ProxyOwnershipTransferred, previous_owner=previous, new_owner=new_owner)
        logger.info(f"Proxy {self.address} ownership moved from {previous} to {new_owner}")

    def fallback(self, selector, args, data):
        implementation = self.implementation()
        if implementation == ZERO_ADDRESS:
            raise ExecutionReverted("Proxy has no implementation")
        if args is None:
            return self.chain.delegate_call(implementation, data)
        return self.chain.delegate_invoke(implementation, selector, *args)

    def receive(self):
        return self.chain.delegate_call(self.implementation(), b"")
