"""
Proxy Registry

Factory and directory of per-user proxies, and the authority deciding which
external contracts may drive them.

Implements:
  - Proxy directory: one OwnableDelegateProxy per user, plus an explicit
    override path for user-driven recovery
  - Authentication grants: a time-delayed state machine
    UNSET → PENDING → GRANTED → REVOKED, with a single bootstrap grant that
    skips the delay
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

from ..chain.contract import Event, Ownable, external, view
from ..constants import GRANT_DELAY_PERIOD, ZERO_ADDRESS
from ..crypto.abi import encode_function_call
from ..exceptions import (
    AlreadyHasProxy,
    AlreadyInitialized,
    ExecutionReverted,
    InvalidGrantState,
    ProxyCallerMismatch,
    UserAlreadyHasProxy,
)
from ..logger import get_logger
from .proxy import AuthenticatedProxy, OwnableDelegateProxy

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  GRANT STATE
# ══════════════════════════════════════════════════════════════════════

class GrantState(IntEnum):
    """Authentication state of an external contract."""
    UNSET = 0       # Never started
    PENDING = 1     # Waiting for the delay period
    GRANTED = 2     # May drive any non-revoked proxy
    REVOKED = 3     # Access withdrawn by the registry owner


@dataclass(frozen=True)
class AuthenticationGrant:
    """
    Grant record for one contract.

    Attributes:
        state: Current grant state
        since: Timestamp the pending period started (PENDING only)
    """
    state: GrantState = GrantState.UNSET
    since: Optional[int] = None

    def __post_init__(self):
        if (self.state == GrantState.PENDING) != (self.since is not None):
            raise ValueError("`since` is set exactly when the grant is pending")

    @property
    def is_granted(self) -> bool:
        return self.state == GrantState.GRANTED

    def ready_at(self, delay_period: int) -> Optional[int]:
        """Earliest finalization time, or None if not pending."""
        if self.state != GrantState.PENDING:
            return None
        return self.since + delay_period

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.name,
            "since": self.since,
        }


UNSET_GRANT = AuthenticationGrant()


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProxyRegistered(Event):
    user: str
    proxy: str


@dataclass(frozen=True)
class AuthenticationStateChanged(Event):
    contract: str
    previous: GrantState
    current: GrantState


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY
# ══════════════════════════════════════════════════════════════════════

class ProxyRegistry(Ownable):
    """
    Proxy factory plus grant authority. The deployer is the owner.

    Constructor:
        delay_period: Seconds between starting and finalizing a grant
    """

    def constructor(self, delay_period: int = GRANT_DELAY_PERIOD) -> None:
        super().constructor()
        if delay_period < 0:
            raise ExecutionReverted("Delay period must be non-negative")
        self.sstore('delay_period', delay_period)

        # The bare implementation is owned and revoked by the registry so it can never be driven
        implementation = self.chain.deploy(self.address, AuthenticatedProxy)
        self.invoke(implementation.address, 'initialize', self.address, self.address)
        self.invoke(implementation.address, 'set_revoke', True)
        self.sstore('delegate_proxy_implementation', implementation.address)

        logger.info(
            f"Registry deployed at {self.address} "
            f"(implementation={implementation.address}, delay={delay_period}s)"
        )

    # ── Read-only ────────────────────────────────────────────────────

    @view("DELAY_PERIOD()")
    def delay_period(self) -> int:
        return self.sload('delay_period', GRANT_DELAY_PERIOD)

    @view("delegateProxyImplementation()")
    def delegate_proxy_implementation(self) -> str:
        return self.sload('delegate_proxy_implementation', ZERO_ADDRESS)

    @view("initialAddressSet()")
    def initial_address_set(self) -> bool:
        return self.sload('initial_address_set', False)

    @view("proxies(address)")
    def proxies(self, user: str) -> str:
        return self.sload(('proxy', user), ZERO_ADDRESS)

    @view()
    def grant(self, contract: str) -> AuthenticationGrant:
        return self.sload(('grant', contract), UNSET_GRANT)

    @view("pending(address)")
    def pending(self, contract: str) -> int:
        """Pending-since timestamp, or 0 when the grant is not pending."""
        grant = self.grant(contract)
        return grant.since if grant.state == GrantState.PENDING else 0

    @view("contracts(address)")
    def contracts(self, contract: str) -> bool:
        return self.grant(contract).is_granted

    @view()
    def is_authenticated(self, contract: str) -> bool:
        """True only while `contract` holds a GRANTED grant."""
        return self.contracts(contract)

    # ── Proxy directory ──────────────────────────────────────────────

    def _create_proxy(self, user: str) -> str:
        init_data = encode_function_call("initialize(address,address)", user, self.address)
        proxy = self.chain.deploy(
            self.address,
            OwnableDelegateProxy,
            user,
            self.delegate_proxy_implementation(),
            init_data,
        )
        self.sstore(('proxy', user), proxy.address)
        self.emit(ProxyRegistered, user=user, proxy=proxy.address)
        logger.info(f"Registered proxy {proxy.address} for {user}")
        return proxy.address

    @external("registerProxy()")
    def register_proxy(self) -> str:
        return self.register_proxy_for(self.msg.sender)

    @external("registerProxyFor(address)")
    def register_proxy_for(self, user: str) -> str:
        if self.proxies(user) != ZERO_ADDRESS:
            raise AlreadyHasProxy()
        return self._create_proxy(user)

    @external("registerProxyOverride()")
    def register_proxy_override(self) -> str:
        """
        Replace the caller's directory entry with a fresh proxy.

        The old proxy is left as it is: its assets and approvals stay with it
        and it simply stops being listed for the user.
        """
        user = self.msg.sender
        previous = self.proxies(user)
        proxy = self._create_proxy(user)
        if previous != ZERO_ADDRESS:
            logger.warning(f"Proxy {previous} for {user} was overridden by {proxy}")
        return proxy

    @external("transferAccessTo(address,address)")
    def transfer_access_to(self, from_user: str, to: str) -> None:
        """Move `from_user`'s proxy entry to `to`. Only the proxy itself may call this."""
        proxy = self.proxies(from_user)
        if self.msg.sender != proxy:
            raise ProxyCallerMismatch()
        if self.proxies(to) != ZERO_ADDRESS:
            raise UserAlreadyHasProxy()
        self.sstore(('proxy', to), proxy)
        self.sstore(('proxy', from_user), None)

    # ── Authentication grants ────────────────────────────────────────

    def _set_grant(self, contract: str, grant: AuthenticationGrant) -> None:
        previous = self.grant(contract)
        self.sstore(('grant', contract), grant)
        self.emit(
            AuthenticationStateChanged,
            contract=contract,
            previous=previous.state,
            current=grant.state,
        )
        logger.info(f"Grant for {contract}: {previous.state.name} -> {grant.state.name}")

    @external("grantInitialAuthentication(address)")
    def grant_initial_authentication(self, contract: str) -> None:
        """Bootstrap grant, usable exactly once, that skips the delay."""
        self._only_owner()
        if self.initial_address_set():
            raise AlreadyInitialized("Wyvern Protocol Proxy Registry initial address already set")
        self.sstore('initial_address_set', True)
        self._set_grant(contract, AuthenticationGrant(GrantState.GRANTED))

    @external("startGrantAuthentication(address)")
    def start_grant_authentication(self, contract: str) -> None:
        self._only_owner()
        current = self.grant(contract)
        if current.state not in (GrantState.UNSET, GrantState.REVOKED):
            raise InvalidGrantState("Contract is already allowed in registry, or pending")
        self._set_grant(contract, AuthenticationGrant(GrantState.PENDING, since=self.now))

    @external("endGrantAuthentication(address)")
    def end_grant_authentication(self, contract: str) -> None:
        self._only_owner()
        current = self.grant(contract)
        ready_at = current.ready_at(self.delay_period())
        if ready_at is None or self.now < ready_at:
            raise InvalidGrantState("Contract is no longer pending or has already been approved by registry")
        self._set_grant(contract, AuthenticationGrant(GrantState.GRANTED))

    @external("revokeAuthentication(address)")
    def revoke_authentication(self, contract: str) -> None:
        self._only_owner()
        if not self.grant(contract).is_granted:
            raise InvalidGrantState("Contract is not currently authenticated")
        self._set_grant(contract, AuthenticationGrant(GrantState.REVOKED))
