"""
Wyvern Exchange

Order hashing, authorization, fill accounting and atomic matching, plus the
predicate interface and the generic helpers orders commonly point at.
"""

from .order import (
    Order,
    Call,
    ORDER_TYPEHASH,
    DOMAIN_TYPEHASH,
    hash_order,
    domain_separator,
    hash_to_sign,
    order_typed_data,
)
from .signatures import AuthSignature, SignatureKind, sign_order_hash
from .predicate import StaticPredicate, predicate, predicate_selector, invoke_predicate
from .core import ExchangeCore, OrderApproved, OrderFillChanged, OrdersMatched
from .exchange import Exchange, pack_atomic_match
from .statics import StaticValidator
from .atomicizer import Atomicizer

__all__ = [
    # Orders
    "Order",
    "Call",
    "ORDER_TYPEHASH",
    "DOMAIN_TYPEHASH",
    "hash_order",
    "domain_separator",
    "hash_to_sign",
    "order_typed_data",
    # Signatures
    "AuthSignature",
    "SignatureKind",
    "sign_order_hash",
    # Predicates
    "StaticPredicate",
    "predicate",
    "predicate_selector",
    "invoke_predicate",
    # Exchange
    "ExchangeCore",
    "Exchange",
    "pack_atomic_match",
    "OrderApproved",
    "OrderFillChanged",
    "OrdersMatched",
    # Helpers
    "StaticValidator",
    "Atomicizer",
]
