"""
Contract Model

Base classes for protocol contracts running on the in-process ledger.

A contract instance is a stateless view bound to an address: every piece of
state lives in ChainState storage. That keeps delegate calls (code of one
class operating on another address's storage) and frame reverts exact.
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Optional, Sequence, Tuple

from eth_abi.exceptions import DecodingError

from ..constants import ZERO_ADDRESS
from ..crypto.abi import compute_function_selector, decode_args, parse_argument_types
from ..crypto.address import to_checksum_address
from ..exceptions import ExecutionReverted, Unauthorized, UnknownSelector


# ══════════════════════════════════════════════════════════════════════
#  ABI REGISTRATION
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class AbiEntry:
    """One externally callable method."""
    attr: str
    signature: Optional[str]
    selector: Optional[bytes]
    input_types: Tuple[str, ...]
    payable: bool = False
    read_only: bool = False
    typed_only: bool = False


def _register(signature: Optional[str], payable: bool, read_only: bool) -> Callable:
    def decorator(fn):
        selector = compute_function_selector(signature) if signature else None
        input_types = tuple(parse_argument_types(signature)) if signature else ()
        fn.__wyvern_abi__ = AbiEntry(
            attr=fn.__name__,
            signature=signature,
            selector=selector,
            input_types=input_types,
            payable=payable,
            read_only=read_only,
        )
        return fn
    return decorator


def external(signature: Optional[str] = None, payable: bool = False) -> Callable:
    """
    Mark a method as externally callable.

    With a signature the method also gets a 4-byte selector and can be
    reached by raw ABI-encoded call data. Without one it is callable by
    name only.
    """
    return _register(signature, payable, read_only=False)


def view(signature: Optional[str] = None) -> Callable:
    """Mark a read-only method as externally callable."""
    return _register(signature, payable=False, read_only=True)


def _normalize(abi_type: str, value: Any) -> Any:
    """Bring decoded (or caller-supplied) values to the ledger's canonical form."""
    if abi_type == 'address':
        return to_checksum_address(value)
    if abi_type.startswith('address['):
        return tuple(to_checksum_address(v) for v in value)
    if isinstance(value, list):
        return tuple(value)
    return value


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Event:
    """Base event; `address` is the emitting contract."""
    address: str

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        data = {'event': self.name}
        for field in fields(self):
            value = getattr(self, field.name)
            if hasattr(value, 'to_dict'):
                value = value.to_dict()
            elif isinstance(value, bytes):
                value = '0x' + value.hex()
            elif isinstance(value, Enum):
                value = value.name
            data[field.name] = value
        return data


# ══════════════════════════════════════════════════════════════════════
#  CONTRACTS
# ══════════════════════════════════════════════════════════════════════

class Contract:
    """
    Base class for ledger contracts.

    Subclasses declare external methods with @external / @view and keep
    their state in storage through sload/sstore.
    """

    _abi: Dict[bytes, AbiEntry] = {}
    _abi_by_name: Dict[str, AbiEntry] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        by_selector: Dict[bytes, AbiEntry] = {}
        by_name: Dict[str, AbiEntry] = {}
        for klass in reversed(cls.__mro__):
            for attr, member in vars(klass).items():
                entry = getattr(member, '__wyvern_abi__', None)
                if entry is None:
                    continue
                by_name[attr] = entry
                if entry.selector is not None:
                    by_selector[entry.selector] = entry
        cls._abi = by_selector
        cls._abi_by_name = by_name

    def __init__(self, chain, address: str):
        self.chain = chain
        self.address = to_checksum_address(address)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Contract) and self.address == other.address

    def __hash__(self) -> int:
        return hash(self.address)

    @classmethod
    def bytecode(cls) -> bytes:
        """Non-empty code marker identifying this contract class."""
        return f"{cls.__module__}.{cls.__qualname__}".encode()

    @classmethod
    def selector(cls, name: str) -> bytes:
        """4-byte selector of an external method, looked up by Python name."""
        entry = cls._abi_by_name.get(name)
        if entry is None or entry.selector is None:
            raise UnknownSelector(f"{cls.__name__} has no ABI method {name!r}")
        return entry.selector

    @classmethod
    def abi_entry(cls, fn) -> Optional[AbiEntry]:
        if isinstance(fn, bytes):
            return cls._abi.get(fn)
        return cls._abi_by_name.get(fn)

    def constructor(self, *args) -> None:
        pass

    # ------------------------------------------------------------------
    # Execution context
    # ------------------------------------------------------------------

    @property
    def msg(self):
        """The active call frame. Raises NoActiveFrame outside a call."""
        return self.chain.current_frame()

    @property
    def now(self) -> int:
        return self.chain.timestamp

    def sload(self, key: Hashable, default: Any = None) -> Any:
        return self.chain.sload(self.address, key, default)

    def sstore(self, key: Hashable, value: Any) -> None:
        self.chain.sstore(self.address, key, value)

    def emit(self, event_cls, **values) -> None:
        self.chain.emit(event_cls(address=self.address, **values))

    def balance(self) -> int:
        return self.chain.balance_of(self.address)

    # Outgoing calls made by this contract (msg.sender is self.address)

    def call(self, target: str, data: bytes = b"", value: int = 0) -> Any:
        return self.chain.call(self.address, target, data, value)

    def invoke(self, target: str, fn, *args, value: int = 0) -> Any:
        return self.chain.invoke(self.address, target, fn, *args, value=value)

    def static_invoke(self, target: str, fn, *args) -> Any:
        return self.chain.static_invoke(self.address, target, fn, *args)

    def send_value(self, target: str, value: int) -> None:
        self.chain.call(self.address, target, b"", value)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, fn, args: Sequence[Any]) -> Any:
        """Dispatch a typed call by method name or selector."""
        entry = self.abi_entry(fn)
        if entry is None:
            if isinstance(fn, bytes):
                return self.fallback(fn, tuple(args), None)
            raise UnknownSelector(f"{type(self).__name__} has no external method {fn!r}")
        if entry.input_types:
            args = [_normalize(t, a) for t, a in zip(entry.input_types, args)]
        return self._execute_entry(entry, args)

    def dispatch_raw(self, data: bytes) -> Any:
        """Dispatch ABI-encoded call data."""
        if not data:
            return self.receive()
        selector = bytes(data[:4])
        entry = self._abi.get(selector)
        if entry is None or entry.typed_only:
            return self.fallback(selector, None, data)
        try:
            decoded = decode_args(entry.input_types, bytes(data[4:]))
        except (DecodingError, ValueError) as e:
            raise ExecutionReverted(f"Malformed call data for {entry.signature}: {e}")
        args = [_normalize(t, a) for t, a in zip(entry.input_types, decoded)]
        return self._execute_entry(entry, args)

    def _execute_entry(self, entry: AbiEntry, args: Sequence[Any]) -> Any:
        if self.chain.in_frame and self.msg.value and not entry.payable and not self.msg.delegate:
            raise ExecutionReverted(f"{entry.attr} is not payable")
        return getattr(self, entry.attr)(*args)

    def fallback(self, selector: bytes, args: Optional[Tuple[Any, ...]], data: Optional[bytes]) -> Any:
        """
        Handle a selector with no matching method.

        Exactly one of `args` (typed call) and `data` (raw call) is set.
        """
        raise UnknownSelector(f"{type(self).__name__}: unknown selector 0x{selector.hex()}")

    def receive(self) -> Any:
        """Handle a plain value transfer with empty call data."""
        raise ExecutionReverted(f"{type(self).__name__} does not accept plain value transfers")

    # ------------------------------------------------------------------
    # Client handles
    # ------------------------------------------------------------------

    def connect(self, sender: str) -> "BoundContract":
        """Return a handle whose method calls are sent as `sender`."""
        return BoundContract(self, sender)


class BoundContract:
    """
    A contract handle that routes method calls through the ledger.

    Each attribute access returns a callable that performs a full message
    call (new frame, snapshot, revert on failure) with the bound sender.
    Names are resolved against the handle's interface class, so a proxy's
    address can be driven with its implementation's interface.
    """

    def __init__(self, contract: Contract, sender: str):
        self._contract = contract
        self._sender = to_checksum_address(sender)

    @property
    def address(self) -> str:
        return self._contract.address

    @property
    def sender(self) -> str:
        return self._sender

    def __getattr__(self, name: str):
        entry = type(self._contract).abi_entry(name)
        if entry is None:
            raise AttributeError(f"{type(self._contract).__name__} has no external method {name!r}")
        chain = self._contract.chain
        fn = entry.selector if entry.selector is not None else name

        if entry.read_only:
            def method(*args):
                return chain.static_invoke(self._sender, self.address, fn, *args)
        else:
            def method(*args, value: int = 0):
                return chain.invoke(self._sender, self.address, fn, *args, value=value)

        method.__name__ = name
        return method

    def __repr__(self) -> str:
        return f"BoundContract({self._contract!r}, sender={self._sender})"


# ══════════════════════════════════════════════════════════════════════
#  OWNERSHIP
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OwnershipTransferred(Event):
    previous_owner: str
    new_owner: str


class Ownable(Contract):
    """Single privileged owner, set to the deployer."""

    OWNER_KEY = 'ownable.owner'

    def constructor(self, *args) -> None:
        self._set_owner(self.msg.sender)

    def _set_owner(self, new_owner: str) -> None:
        previous = self.sload(self.OWNER_KEY, ZERO_ADDRESS)
        self.sstore(self.OWNER_KEY, new_owner)
        self.emit(OwnershipTransferred, previous_owner=previous, new_owner=new_owner)

    def _only_owner(self) -> None:
        if self.msg.sender != self.owner():
            raise Unauthorized("Ownable: caller is not the owner")

    @view("owner()")
    def owner(self) -> str:
        return self.sload(self.OWNER_KEY, ZERO_ADDRESS)

    @external("transferOwnership(address)")
    def transfer_ownership(self, new_owner: str) -> None:
        self._only_owner()
        if new_owner == ZERO_ADDRESS:
            raise ExecutionReverted("Ownable: new owner is the zero address")
        self._set_owner(new_owner)

    @external("renounceOwnership()")
    def renounce_ownership(self) -> None:
        self._only_owner()
        self._set_owner(ZERO_ADDRESS)
