"""
Wyvern Proxy Registry

Per-user authenticated proxies and the registry that creates them and
decides which external contracts may drive them.
"""

from .proxy import (
    AuthenticatedProxy,
    OwnableDelegateProxy,
    HowToCall,
    Revoked,
    ReceivedEther,
    ReceivedTokens,
    Upgraded,
    ProxyOwnershipTransferred,
)
from .registry import (
    ProxyRegistry,
    GrantState,
    AuthenticationGrant,
    ProxyRegistered,
    AuthenticationStateChanged,
)

__all__ = [
    # Proxy
    "AuthenticatedProxy",
    "OwnableDelegateProxy",
    "HowToCall",
    "Revoked",
    "ReceivedEther",
    "ReceivedTokens",
    "Upgraded",
    "ProxyOwnershipTransferred",
    # Registry
    "ProxyRegistry",
    "GrantState",
    "AuthenticationGrant",
    "ProxyRegistered",
    "AuthenticationStateChanged",
]
