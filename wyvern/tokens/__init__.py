"""
Wyvern Token Contracts

Fungible token used to exercise proxies and matches end to end.
"""

from .erc20 import (
    ERC20Token,
    ERC20Error,
    InsufficientBalanceError,
    InsufficientAllowanceError,
    ZeroAddressError,
    Transfer,
    Approval,
)

__all__ = [
    "ERC20Token",
    "ERC20Error",
    "InsufficientBalanceError",
    "InsufficientAllowanceError",
    "ZeroAddressError",
    "Transfer",
    "Approval",
]
