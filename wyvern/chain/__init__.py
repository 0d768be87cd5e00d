"""
Wyvern Ledger

In-process execution environment for protocol contracts.
"""

from .state import Account, ChainState, Message
from .contract import (
    AbiEntry,
    BoundContract,
    Contract,
    Event,
    Ownable,
    OwnershipTransferred,
    external,
    view,
)

__all__ = [
    "Account",
    "ChainState",
    "Message",
    "AbiEntry",
    "BoundContract",
    "Contract",
    "Event",
    "Ownable",
    "OwnershipTransferred",
    "external",
    "view",
]
