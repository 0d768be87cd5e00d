"""
Wyvern Exceptions

Custom exception classes for the Wyvern exchange protocol.

Two families:
  - ExecutionReverted and its subclasses are contract-level hard failures.
    Raising one inside a call frame rolls back every state change made in
    that frame before the exception reaches the caller.
  - Everything else is a host-side error (bad keys, bad config, misuse of
    the ledger API) and never represents protocol state.
"""


class WyvernException(Exception):
    """Base exception for Wyvern."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  HOST-SIDE ERRORS
# ══════════════════════════════════════════════════════════════════════

class InvalidKeyError(WyvernException):
    """Invalid cryptographic key."""
    pass


class InvalidAddressError(WyvernException):
    """Invalid address format."""
    pass


class InvalidSignatureError(WyvernException):
    """Invalid cryptographic signature."""
    pass


class ConfigurationError(WyvernException):
    """Configuration error."""
    pass


class ClockError(WyvernException):
    """Ledger time was moved backwards."""
    pass


class NoActiveFrame(WyvernException):
    """A contract tried to read the message context outside of a call."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  CONTRACT REVERTS
# ══════════════════════════════════════════════════════════════════════

class ExecutionReverted(WyvernException):
    """A contract call aborted; all effects of the call are discarded."""

    default_reason = "execution reverted"

    def __init__(self, reason: str = ""):
        self.reason = reason or self.default_reason
        super().__init__(self.reason)


class Unauthorized(ExecutionReverted):
    default_reason = "Caller is not authorized"


class AlreadyInitialized(ExecutionReverted):
    default_reason = "Already initialized"


class AlreadyHasProxy(ExecutionReverted):
    default_reason = "User already has a proxy"


class UserAlreadyHasProxy(ExecutionReverted):
    default_reason = "Proxy transfer has existing proxy as destination"


class ProxyCallerMismatch(ExecutionReverted):
    default_reason = "Proxy transfer can only be called by the proxy"


class InvalidGrantState(ExecutionReverted):
    default_reason = "Contract is not in a valid authentication state for this operation"


InvalidState = InvalidGrantState


class SameImplementation(ExecutionReverted):
    default_reason = "Proxy already uses this implementation"


class AlreadyApproved(ExecutionReverted):
    default_reason = "Order has already been approved"


class FillUnchanged(ExecutionReverted):
    default_reason = "Fill is already set to the desired value"


class InvalidOrderParameters(ExecutionReverted):
    default_reason = "Order parameters are invalid"


class OrderUnauthorized(ExecutionReverted):
    default_reason = "Order authorization is invalid"


class SelfMatch(ExecutionReverted):
    default_reason = "Self-matching orders is prohibited"


class PredicateRejected(ExecutionReverted):
    default_reason = "Static call rejected the match"


class ReentrantCall(ExecutionReverted):
    default_reason = "Reentrant call"


class UnknownRegistry(ExecutionReverted):
    default_reason = "Registry is not approved by the exchange"


class CallTargetMissing(ExecutionReverted):
    default_reason = "Call target does not exist"


class MissingProxy(ExecutionReverted):
    default_reason = "Delegate proxy does not exist for maker"


class InvalidProxyImplementation(ExecutionReverted):
    default_reason = "Incorrect delegate proxy implementation for maker"


class CallFailed(ExecutionReverted):
    default_reason = "Call failed"


class TokenTransferFailed(ExecutionReverted):
    default_reason = "ERC20 token transfer failed"


class UnknownSelector(ExecutionReverted):
    default_reason = "Function selector was not recognized"


class StaticCallViolation(ExecutionReverted):
    default_reason = "State modification attempted during a static call"


class InsufficientFunds(ExecutionReverted):
    default_reason = "Insufficient balance for value transfer"
