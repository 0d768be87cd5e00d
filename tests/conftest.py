"""
Shared fixtures: a fresh ledger with funded accounts and a deployed protocol
(registry, exchange, generic predicates, atomicizer, test token).
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from wyvern.chain import ChainState
from wyvern.constants import ZERO_HASH
from wyvern.crypto import PrivateKey, to_checksum_address
from wyvern.exchange import (
    Atomicizer,
    Call,
    Exchange,
    Order,
    StaticValidator,
    hash_order,
    predicate_selector,
    sign_order_hash,
)
from wyvern.registry import AuthenticatedProxy, ProxyRegistry
from wyvern.tokens import ERC20Token


CHAIN_ID = 50
# Whitelisted by the exchange but never deployed
UNDEPLOYED_REGISTRY = to_checksum_address("0xa5409ec958c83c3f309868babaca7c86dcb077c1")
INITIAL_BALANCE = 10 ** 21

KEYS = [PrivateKey.from_int(i + 1) for i in range(6)]


# ══════════════════════════════════════════════════════════════════════
#  LEDGER
# ══════════════════════════════════════════════════════════════════════

@pytest.fixture
def chain():
    return ChainState(chain_id=CHAIN_ID)


@pytest.fixture
def keys():
    return KEYS


@pytest.fixture
def accounts(chain):
    """Funded EOAs; accounts[0] deploys everything."""
    addresses = [key.address for key in KEYS]
    for address in addresses:
        chain.fund(address, INITIAL_BALANCE)
    return addresses


# ══════════════════════════════════════════════════════════════════════
#  PROTOCOL
# ══════════════════════════════════════════════════════════════════════

@pytest.fixture
def registry(chain, accounts):
    return chain.deploy(accounts[0], ProxyRegistry)


@pytest.fixture
def atomicizer(chain, accounts):
    return chain.deploy(accounts[0], Atomicizer)


@pytest.fixture
def statics(chain, accounts, atomicizer):
    return chain.deploy(accounts[0], StaticValidator, atomicizer.address)


@pytest.fixture
def exchange(chain, accounts, registry):
    """Exchange deployed and granted initial authentication on the registry."""
    exchange = chain.deploy(
        accounts[0], Exchange, CHAIN_ID, [registry.address, UNDEPLOYED_REGISTRY],
    )
    registry.connect(accounts[0]).grant_initial_authentication(exchange.address)
    return exchange


@pytest.fixture
def token(chain, accounts):
    return chain.deploy(accounts[0], ERC20Token, "Test Token", "TST", 18)


@pytest.fixture
def proxies(chain, accounts, registry):
    """Proxies for accounts[1] and accounts[2], addressed with the implementation's interface."""
    handles = {}
    for user in accounts[1:3]:
        address = registry.connect(user).register_proxy()
        handles[user] = chain.contract_at(address, AuthenticatedProxy)
    return handles


# ══════════════════════════════════════════════════════════════════════
#  FACTORIES
# ══════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_order(registry, statics):
    """Build an order against the default registry, accepting any counter order."""
    def factory(maker, **overrides) -> Order:
        fields = dict(
            registry=registry.address,
            maker=maker,
            static_target=statics.address,
            static_selector=predicate_selector("any"),
            static_extradata=b"",
            maximum_fill=1,
            listing_time=0,
            expiration_time=0,
            salt=0,
        )
        fields.update(overrides)
        return Order(**fields)
    return factory


@pytest.fixture
def sign(exchange):
    """Sign an order for the deployed exchange; returns the auth blob."""
    def signer(key: PrivateKey, order: Order, **kwargs) -> bytes:
        return sign_order_hash(key, exchange.hash_to_sign(hash_order(order)), **kwargs)
    return signer


@pytest.fixture
def nop_call(statics):
    return Call(statics.address, 0, statics.selector("test"))


@pytest.fixture
def match(exchange, accounts):
    """Submit a match from a third-party matcher (accounts[5])."""
    def submit(first_order, first_sig, first_call, second_order, second_sig, second_call,
               metadata=ZERO_HASH, value=0, matcher=None):
        return exchange.connect(matcher or accounts[5]).atomic_match(
            first_order, first_sig, first_call,
            second_order, second_sig, second_call,
            metadata,
            value=value,
        )
    return submit
