"""
Proxy Registry & Authenticated Proxy Test Suite

Coverage:
  - Registry: deployment, proxy directory, override, access transfer
  - Authentication grants: bootstrap grant, delayed grant lifecycle, revocation
  - OwnableDelegateProxy: upgrades, ownership transfer, proxy type, value receipt
  - AuthenticatedProxy: initialization, revocation, the execute gate,
    CALL / DELEGATE_CALL, token receipt
"""

import pytest

from wyvern.constants import GRANT_DELAY_PERIOD, PROXY_TYPE, ZERO_ADDRESS
from wyvern.crypto import encode_function_call
from wyvern.exceptions import (
    AlreadyHasProxy,
    AlreadyInitialized,
    CallFailed,
    ExecutionReverted,
    InvalidGrantState,
    ProxyCallerMismatch,
    SameImplementation,
    Unauthorized,
    UserAlreadyHasProxy,
)
from wyvern.registry import (
    AuthenticatedProxy,
    AuthenticationGrant,
    AuthenticationStateChanged,
    GrantState,
    HowToCall,
    OwnableDelegateProxy,
    ProxyRegistered,
    ProxyRegistry,
    ReceivedEther,
    ReceivedTokens,
    Revoked,
)
from wyvern.tokens import InsufficientBalanceError


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

@pytest.fixture
def owner(accounts):
    return accounts[0]


@pytest.fixture
def user1(accounts):
    return accounts[1]


@pytest.fixture
def user2(accounts):
    return accounts[2]


@pytest.fixture
def proxy_address(registry, user1):
    return registry.connect(user1).register_proxy()


@pytest.fixture
def wrapper(chain, proxy_address):
    """user1's proxy, addressed with the wrapper's own interface."""
    return chain.contract_at(proxy_address, OwnableDelegateProxy)


@pytest.fixture
def proxy(chain, proxy_address):
    """user1's proxy, addressed with the implementation's interface."""
    return chain.contract_at(proxy_address, AuthenticatedProxy)


def grant_after_delay(chain, registry, owner, contract):
    """Run the full delayed grant for `contract`."""
    admin = registry.connect(owner)
    admin.start_grant_authentication(contract)
    chain.advance_time(registry.delay_period())
    admin.end_grant_authentication(contract)


def transfer_call(recipient, amount):
    return encode_function_call("transfer(address,uint256)", recipient, amount)


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY
# ══════════════════════════════════════════════════════════════════════

class TestRegistryDeploy:

    def test_owner(self, registry, owner):
        assert registry.owner() == owner

    def test_default_delay(self, registry):
        assert registry.delay_period() == GRANT_DELAY_PERIOD

    def test_custom_delay(self, chain, owner):
        registry = chain.deploy(owner, ProxyRegistry, 60)
        assert registry.delay_period() == 60

    def test_negative_delay(self, chain, owner):
        with pytest.raises(ExecutionReverted):
            chain.deploy(owner, ProxyRegistry, -1)

    def test_has_delegate_proxy_implementation(self, chain, registry):
        implementation = registry.delegate_proxy_implementation()
        assert len(implementation) == 42
        assert chain.code_class(implementation) is AuthenticatedProxy

    def test_implementation_is_locked(self, chain, registry):
        # The bare implementation belongs to the registry and is revoked
        implementation = chain.contract_at(registry.delegate_proxy_implementation())
        assert implementation.user() == registry.address
        assert implementation.registry() == registry.address
        assert implementation.revoked() is True


class TestProxyDirectory:

    def test_register_proxy(self, chain, registry, user1, proxy_address):
        assert registry.proxies(user1) == proxy_address
        assert chain.code_class(proxy_address) is OwnableDelegateProxy
        (event,) = chain.logs(ProxyRegistered)
        assert event.user == user1
        assert event.proxy == proxy_address

    def test_unregistered_user(self, registry, user2):
        assert registry.proxies(user2) == ZERO_ADDRESS

    def test_register_twice(self, registry, user1, proxy_address):
        with pytest.raises(AlreadyHasProxy, match="User already has a proxy"):
            registry.connect(user1).register_proxy()

    def test_register_for_another_user(self, registry, owner, user2):
        proxy = registry.connect(owner).register_proxy_for(user2)
        assert registry.proxies(user2) == proxy

    def test_register_for_user_with_proxy(self, registry, owner, user1, proxy_address):
        with pytest.raises(AlreadyHasProxy):
            registry.connect(owner).register_proxy_for(user1)

    def test_proxy_is_bound_to_user(self, registry, proxy, user1):
        assert proxy.user() == user1
        assert proxy.registry() == registry.address
        assert proxy.revoked() is False

    def test_override(self, chain, registry, user1, proxy_address):
        replacement = registry.connect(user1).register_proxy_override()
        assert replacement != proxy_address
        assert registry.proxies(user1) == replacement
        # The old proxy is left in place
        assert chain.exists(proxy_address)
        assert chain.contract_at(proxy_address, AuthenticatedProxy).user() == user1

    def test_override_without_existing_proxy(self, registry, user2):
        proxy = registry.connect(user2).register_proxy_override()
        assert registry.proxies(user2) == proxy

    def test_transfer_access_from_outsider(self, registry, owner, user1, user2, proxy_address):
        with pytest.raises(ProxyCallerMismatch, match="Proxy transfer can only be called by the proxy"):
            registry.connect(owner).transfer_access_to(user1, user2)

    def test_transfer_access_from_user(self, registry, user1, user2, proxy_address):
        with pytest.raises(ProxyCallerMismatch):
            registry.connect(user1).transfer_access_to(user1, user2)


# ══════════════════════════════════════════════════════════════════════
#  AUTHENTICATION GRANTS
# ══════════════════════════════════════════════════════════════════════

class TestInitialAuthentication:

    def test_grant(self, registry, owner, user1):
        registry.connect(owner).grant_initial_authentication(user1)
        assert registry.contracts(user1) is True
        assert registry.is_authenticated(user1) is True
        assert registry.initial_address_set() is True

    def test_only_once(self, registry, owner, user1):
        admin = registry.connect(owner)
        admin.grant_initial_authentication(user1)
        with pytest.raises(AlreadyInitialized, match="initial address already set"):
            admin.grant_initial_authentication(registry.address)

    def test_owner_only(self, registry, user1):
        with pytest.raises(Unauthorized):
            registry.connect(user1).grant_initial_authentication(user1)
        assert registry.initial_address_set() is False


class TestGrantLifecycle:

    def test_start(self, chain, registry, owner, user2):
        registry.connect(owner).start_grant_authentication(user2)
        assert registry.pending(user2) == chain.timestamp
        assert registry.grant(user2) == AuthenticationGrant(GrantState.PENDING, since=chain.timestamp)
        assert registry.contracts(user2) is False

    def test_end_before_delay(self, chain, registry, owner, user2):
        admin = registry.connect(owner)
        admin.start_grant_authentication(user2)
        chain.advance_time(registry.delay_period() - 1)
        with pytest.raises(InvalidGrantState, match="no longer pending or has already been approved"):
            admin.end_grant_authentication(user2)
        assert registry.grant(user2).state == GrantState.PENDING

    def test_end_after_delay(self, chain, registry, owner, user2):
        grant_after_delay(chain, registry, owner, user2)
        assert registry.contracts(user2) is True
        assert registry.pending(user2) == 0

    def test_end_long_after_delay(self, chain, registry, owner):
        admin = registry.connect(owner)
        admin.start_grant_authentication(owner)
        chain.advance_time(86400 * 7 * 3 * 10000)
        admin.end_grant_authentication(owner)
        assert registry.contracts(owner) is True
        admin.revoke_authentication(owner)
        assert registry.contracts(owner) is False

    def test_start_twice(self, registry, owner, user2):
        admin = registry.connect(owner)
        admin.start_grant_authentication(user2)
        with pytest.raises(InvalidGrantState, match="already allowed in registry, or pending"):
            admin.start_grant_authentication(user2)

    def test_start_when_granted(self, chain, registry, owner, user2):
        grant_after_delay(chain, registry, owner, user2)
        with pytest.raises(InvalidGrantState):
            registry.connect(owner).start_grant_authentication(user2)

    def test_end_without_start(self, registry, owner, user1):
        with pytest.raises(InvalidGrantState):
            registry.connect(owner).end_grant_authentication(user1)

    def test_end_twice(self, chain, registry, owner, user2):
        grant_after_delay(chain, registry, owner, user2)
        with pytest.raises(InvalidGrantState):
            registry.connect(owner).end_grant_authentication(user2)

    def test_revoke_then_restart(self, chain, registry, owner, user2):
        grant_after_delay(chain, registry, owner, user2)
        admin = registry.connect(owner)
        admin.revoke_authentication(user2)
        assert registry.grant(user2).state == GrantState.REVOKED
        admin.start_grant_authentication(user2)
        assert registry.grant(user2).state == GrantState.PENDING

    def test_revoke_when_not_granted(self, registry, owner, user2):
        with pytest.raises(InvalidGrantState, match="not currently authenticated"):
            registry.connect(owner).revoke_authentication(user2)

    def test_owner_only(self, registry, user1, user2):
        with pytest.raises(Unauthorized):
            registry.connect(user1).start_grant_authentication(user2)

    def test_zero_delay(self, chain, owner, user2):
        registry = chain.deploy(owner, ProxyRegistry, 0)
        admin = registry.connect(owner)
        admin.start_grant_authentication(user2)
        admin.end_grant_authentication(user2)
        assert registry.is_authenticated(user2) is True

    def test_transition_events(self, chain, registry, owner, user2):
        grant_after_delay(chain, registry, owner, user2)
        registry.connect(owner).revoke_authentication(user2)
        transitions = [(e.previous, e.current) for e in chain.logs(AuthenticationStateChanged)]
        assert transitions == [
            (GrantState.UNSET, GrantState.PENDING),
            (GrantState.PENDING, GrantState.GRANTED),
            (GrantState.GRANTED, GrantState.REVOKED),
        ]
        assert chain.logs(AuthenticationStateChanged)[0].to_dict()["current"] == "PENDING"


class TestAuthenticationGrant:

    def test_pending_requires_since(self):
        with pytest.raises(ValueError):
            AuthenticationGrant(GrantState.PENDING)

    def test_since_only_when_pending(self):
        with pytest.raises(ValueError):
            AuthenticationGrant(GrantState.GRANTED, since=5)

    def test_ready_at(self):
        assert AuthenticationGrant(GrantState.PENDING, since=100).ready_at(10) == 110
        assert AuthenticationGrant(GrantState.GRANTED).ready_at(10) is None

    def test_to_dict(self):
        assert AuthenticationGrant().to_dict() == {"state": "UNSET", "since": None}


# ══════════════════════════════════════════════════════════════════════
#  DELEGATE PROXY WRAPPER
# ══════════════════════════════════════════════════════════════════════

class TestOwnableDelegateProxy:

    def test_proxy_type(self, wrapper):
        assert wrapper.proxy_type() == PROXY_TYPE == 2

    def test_owner_and_implementation(self, registry, wrapper, user1):
        assert wrapper.proxy_owner() == user1
        assert wrapper.implementation() == registry.delegate_proxy_implementation()

    def test_upgrade(self, registry, wrapper, user1):
        implementation = registry.delegate_proxy_implementation()
        handle = wrapper.connect(user1)
        handle.upgrade_to(registry.address)
        assert wrapper.implementation() == registry.address
        handle.upgrade_to(implementation)
        assert wrapper.implementation() == implementation

    def test_upgrade_to_same_implementation(self, registry, wrapper, user1):
        with pytest.raises(SameImplementation, match="Proxy already uses this implementation"):
            wrapper.connect(user1).upgrade_to(registry.delegate_proxy_implementation())

    def test_upgrade_from_another_account(self, registry, wrapper, user2):
        with pytest.raises(Unauthorized):
            wrapper.connect(user2).upgrade_to(registry.address)

    def test_upgrade_and_call(self, chain, owner, wrapper, proxy, user1):
        new_implementation = chain.deploy(owner, AuthenticatedProxy)
        data = encode_function_call("setRevoke(bool)", True)
        wrapper.connect(user1).upgrade_to_and_call(new_implementation.address, data)
        assert wrapper.implementation() == new_implementation.address
        # Storage survives the upgrade; the call ran as the user
        assert proxy.user() == user1
        assert proxy.revoked() is True

    def test_ownership_transfer(self, registry, wrapper, proxy, user1, user2):
        wrapper.connect(user1).transfer_ownership(user2)
        assert wrapper.proxy_owner() == user2
        assert proxy.user() == user2
        assert registry.proxies(user2) == wrapper.address
        assert registry.proxies(user1) == ZERO_ADDRESS

        wrapper.connect(user2).transfer_ownership(user1)
        assert wrapper.proxy_owner() == user1
        assert registry.proxies(user1) == wrapper.address

    def test_ownership_transfer_to_user_with_proxy(self, registry, wrapper, user1, user2):
        registry.connect(user2).register_proxy()
        with pytest.raises(UserAlreadyHasProxy):
            wrapper.connect(user1).transfer_ownership(user2)
        assert wrapper.proxy_owner() == user1
        assert registry.proxies(user1) == wrapper.address

    def test_ownership_transfer_by_stranger(self, wrapper, user2):
        with pytest.raises(Unauthorized):
            wrapper.connect(user2).transfer_ownership(user2)

    def test_ownership_transfer_to_zero(self, wrapper, user1):
        with pytest.raises(ExecutionReverted, match="null address"):
            wrapper.connect(user1).transfer_ownership(ZERO_ADDRESS)

    def test_receive_ether(self, chain, proxy_address, user1):
        chain.call(user1, proxy_address, b"", 1000)
        assert chain.balance_of(proxy_address) == 1000
        (event,) = chain.logs(ReceivedEther)
        assert event.address == proxy_address
        assert event.sender == user1
        assert event.amount == 1000


# ══════════════════════════════════════════════════════════════════════
#  AUTHENTICATED PROXY
# ══════════════════════════════════════════════════════════════════════

class TestAuthenticatedProxy:

    def test_no_reinitialization(self, registry, proxy, owner):
        with pytest.raises(AlreadyInitialized):
            proxy.connect(owner).initialize(registry.address, registry.address)

    def test_revoke(self, chain, proxy, user1):
        proxy.connect(user1).set_revoke(True)
        assert proxy.revoked() is True
        assert chain.logs(Revoked)[-1].revoked is True
        proxy.connect(user1).set_revoke(False)
        assert proxy.revoked() is False

    def test_revoke_from_another_account(self, proxy, user2):
        with pytest.raises(Unauthorized, match="can only be revoked by its user"):
            proxy.connect(user2).set_revoke(True)

    def test_receive_tokens_before_approval(self, proxy, token, user1):
        with pytest.raises(InsufficientBalanceError, match="ERC20: transfer amount exceeds balance"):
            proxy.connect(user1).receive_approval(user1, 1000, token.address, b"")

    def test_receive_tokens(self, chain, proxy, token, user1):
        token.connect(user1).mint(user1, 1000)
        token.connect(user1).approve(proxy.address, 1000)
        proxy.connect(user1).receive_approval(user1, 1000, token.address, b"")
        assert token.balance_of(proxy.address) == 1000
        assert token.balance_of(user1) == 0
        (event,) = chain.logs(ReceivedTokens)
        assert event.token == token.address
        assert event.value == 1000


class TestExecuteGate:
    """Who may drive a proxy, under which grant and revocation states."""

    @pytest.fixture
    def funded_proxy(self, proxy, token, user1):
        token.connect(user1).mint(proxy.address, 100)
        return proxy

    def test_user_can_execute(self, funded_proxy, token, user1, user2):
        assert funded_proxy.connect(user1).execute(token.address, HowToCall.CALL, transfer_call(user2, 10))
        assert token.balance_of(user2) == 10

    def test_user_can_execute_when_revoked(self, funded_proxy, token, user1, user2):
        funded_proxy.connect(user1).set_revoke(True)
        assert funded_proxy.connect(user1).execute(token.address, HowToCall.CALL, transfer_call(user2, 10))

    def test_stranger_cannot_execute(self, funded_proxy, token, user2):
        with pytest.raises(Unauthorized, match="can only be called by its user"):
            funded_proxy.connect(user2).execute(token.address, HowToCall.CALL, transfer_call(user2, 10))
        assert token.balance_of(user2) == 0

    def test_pending_contract_cannot_execute(self, registry, funded_proxy, token, owner, user2):
        registry.connect(owner).start_grant_authentication(user2)
        with pytest.raises(Unauthorized):
            funded_proxy.connect(user2).execute(token.address, HowToCall.CALL, transfer_call(user2, 10))

    def test_granted_contract_can_execute(self, chain, registry, funded_proxy, token, owner, user2):
        grant_after_delay(chain, registry, owner, user2)
        assert funded_proxy.connect(user2).execute(token.address, HowToCall.CALL, transfer_call(user2, 10))
        assert token.balance_of(user2) == 10

    def test_user_revocation_blocks_granted_contract(self, chain, registry, funded_proxy, token, owner, user1, user2):
        grant_after_delay(chain, registry, owner, user2)
        funded_proxy.connect(user1).set_revoke(True)
        with pytest.raises(Unauthorized):
            funded_proxy.connect(user2).execute(token.address, HowToCall.CALL, transfer_call(user2, 10))

    def test_registry_revocation_blocks_contract(self, chain, registry, funded_proxy, token, owner, user2):
        grant_after_delay(chain, registry, owner, user2)
        registry.connect(owner).revoke_authentication(user2)
        with pytest.raises(Unauthorized):
            funded_proxy.connect(user2).execute(token.address, HowToCall.CALL, transfer_call(user2, 10))

    def test_failed_inner_call_returns_false(self, funded_proxy, token, user1, user2):
        data = transfer_call(user2, 1000)
        assert funded_proxy.connect(user1).execute(token.address, HowToCall.CALL, data) is False
        assert token.balance_of(funded_proxy.address) == 100

    def test_assert_raises_on_failure(self, funded_proxy, token, user1, user2):
        with pytest.raises(CallFailed):
            funded_proxy.connect(user1).execute_assert(token.address, HowToCall.CALL, transfer_call(user2, 1000))

    def test_invalid_call_type(self, funded_proxy, token, user1, user2):
        with pytest.raises(ExecutionReverted, match="Invalid call type"):
            funded_proxy.connect(user1).execute(token.address, 2, transfer_call(user2, 1))

    def test_bare_implementation_cannot_be_driven(self, chain, registry, token, owner, user1):
        grant_after_delay(chain, registry, owner, user1)
        implementation = chain.contract_at(registry.delegate_proxy_implementation())
        with pytest.raises(Unauthorized):
            implementation.connect(user1).execute(token.address, HowToCall.CALL, b"")

    def test_delegate_call_batch(self, funded_proxy, atomicizer, token, user1, accounts):
        recipients = accounts[3:5]
        calls = [transfer_call(recipient, 5) for recipient in recipients]
        data = encode_function_call(
            "atomicize(address[],uint256[],uint256[],bytes)",
            [token.address, token.address], [0, 0], [len(c) for c in calls], b"".join(calls),
        )
        assert funded_proxy.connect(user1).execute(atomicizer.address, HowToCall.DELEGATE_CALL, data)
        # Transfers were sent from the proxy itself
        assert [token.balance_of(r) for r in recipients] == [5, 5]
        assert token.balance_of(funded_proxy.address) == 90

    def test_delegate_call_batch_fails_as_a_whole(self, funded_proxy, atomicizer, token, user1, accounts):
        calls = [transfer_call(accounts[3], 50), transfer_call(accounts[4], 60)]
        data = encode_function_call(
            "atomicize(address[],uint256[],uint256[],bytes)",
            [token.address, token.address], [0, 0], [len(c) for c in calls], b"".join(calls),
        )
        assert funded_proxy.connect(user1).execute(atomicizer.address, HowToCall.DELEGATE_CALL, data) is False
        assert token.balance_of(accounts[3]) == 0
        assert token.balance_of(funded_proxy.address) == 100
