"""
Ledger State

A deterministic, in-process ledger that protocol contracts execute against.

Features:
- Ethereum-style accounts (balance, nonce, code hash)
- Contract code table and flat contract storage
- Message call frames with journaled snapshot/revert on failure
- Static (read-only) and delegate call semantics
- Externally driven clock and block counter
- Append-only event log
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple, Union

from eth_utils import keccak

from ..constants import DEFAULT_CHAIN_ID, DEFAULT_GENESIS_TIMESTAMP
from ..crypto.address import generate_contract_address, to_checksum_address
from ..exceptions import (
    CallTargetMissing,
    ClockError,
    ExecutionReverted,
    InsufficientFunds,
    NoActiveFrame,
    StaticCallViolation,
    UnknownSelector,
)
from ..logger import get_logger

logger = get_logger(__name__)


EMPTY_CODE_HASH = keccak(b'')

Selector = Union[str, bytes]


@dataclass
class Account:
    """
    Ethereum-style account (EOA or contract).

    Attributes:
        address: Account address
        balance: Account balance (smallest unit)
        nonce: Deployment nonce
        code_hash: Hash of contract code (None for EOA)
    """
    address: str
    balance: int = 0
    nonce: int = 0
    code_hash: Optional[bytes] = None

    @property
    def is_contract(self) -> bool:
        """Check if this is a contract account."""
        return self.code_hash is not None and self.code_hash != EMPTY_CODE_HASH


@dataclass(frozen=True)
class Message:
    """
    The active call frame as seen by executing code.

    `address` is the storage context; `code_address` is whose code runs.
    They differ only under a delegate call.
    """
    sender: str
    value: int
    address: str
    code_address: str
    static: bool = False
    delegate: bool = False


@dataclass
class _Snapshot:
    journal_length: int
    log_length: int


# Marks a journaled entry that did not exist before the write
_ABSENT = object()


class ChainState:
    """
    Serialized ledger with atomic call frames.

    Every operation runs inside a frame. Any exception escaping a frame
    restores accounts, code, storage and logs to their state at frame entry
    and is re-raised to the caller.
    """

    def __init__(self, chain_id: int = DEFAULT_CHAIN_ID, timestamp: int = DEFAULT_GENESIS_TIMESTAMP):
        self.chain_id = chain_id
        self.timestamp = timestamp
        self.block_number = 0
        self._accounts: Dict[str, Account] = {}
        self._code: Dict[str, type] = {}
        self._storage: Dict[Tuple[str, Hashable], Any] = {}
        self._logs: List[Any] = []
        self._frames: List[Message] = []
        self._snapshots: List[_Snapshot] = []
        self._journal: List[Tuple[str, Any, Any]] = []

    @classmethod
    def from_config(cls, config) -> "ChainState":
        """Build a ledger from a loaded WyvernConfig."""
        return cls(chain_id=config.chain.chain_id, timestamp=config.chain.genesis_timestamp)

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    def advance_time(self, seconds: int) -> int:
        """Move the clock forward and mine one block. Returns the new timestamp."""
        if seconds < 0:
            raise ClockError(f"Cannot advance time by a negative amount: {seconds}")
        self.timestamp += seconds
        self.mine()
        return self.timestamp

    def set_timestamp(self, timestamp: int) -> None:
        if timestamp < self.timestamp:
            raise ClockError(f"Timestamp {timestamp} is before current time {self.timestamp}")
        self.timestamp = timestamp

    def mine(self, blocks: int = 1) -> int:
        self.block_number += blocks
        return self.block_number

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def _account(self, address: str) -> Account:
        """Return the mutable account record, journaling its prior state."""
        address = to_checksum_address(address)
        account = self._accounts.get(address)
        self._record('account', address, Account(**vars(account)) if account else _ABSENT)
        if account is None:
            account = Account(address=address)
            self._accounts[address] = account
        return account

    def get_account(self, address: str) -> Account:
        """Return a copy of the account record (empty if unknown)."""
        address = to_checksum_address(address)
        account = self._accounts.get(address)
        return Account(**vars(account)) if account else Account(address=address)

    def balance_of(self, address: str) -> int:
        account = self._accounts.get(to_checksum_address(address))
        return account.balance if account else 0

    def fund(self, address: str, amount: int) -> None:
        """Credit an account out of thin air (test faucet)."""
        if amount < 0:
            raise ValueError("Funding amount must be non-negative")
        self._account(address).balance += amount

    def _transfer(self, sender: str, recipient: str, amount: int) -> None:
        if amount == 0:
            return
        self._require_mutable("value transfer")
        source = self._account(sender)
        if source.balance < amount:
            raise InsufficientFunds(
                f"{source.address} has {source.balance}, needs {amount}"
            )
        source.balance -= amount
        self._account(recipient).balance += amount

    # ------------------------------------------------------------------
    # Code
    # ------------------------------------------------------------------

    def get_code(self, address: str) -> bytes:
        """Return the code marker for an address, or b'' for accounts without code."""
        cls = self._code.get(to_checksum_address(address))
        return cls.bytecode() if cls is not None else b''

    def code_class(self, address: str) -> Optional[type]:
        return self._code.get(to_checksum_address(address))

    def exists(self, address: str) -> bool:
        """True iff the address holds code."""
        return len(self.get_code(address)) > 0

    def _install_code(self, address: str, contract_cls: type) -> None:
        self._require_mutable("code deployment")
        self._record('code', address, self._code.get(address, _ABSENT))
        self._code[address] = contract_cls
        self._account(address).code_hash = keccak(contract_cls.bytecode())

    def deploy(self, deployer: str, contract_cls: type, *args, value: int = 0):
        """
        Deploy a contract.

        The address is derived from the deployer and its nonce, exactly as
        the CREATE opcode does. The constructor runs inside a frame whose
        sender is the deployer.

        Returns:
            The contract instance bound to its new address
        """
        deployer = to_checksum_address(deployer)
        account = self._account(deployer)
        address = generate_contract_address(deployer, account.nonce)
        account.nonce += 1

        frame = Message(
            sender=deployer,
            value=value,
            address=address,
            code_address=address,
            static=self._in_static(),
        )
        instance = contract_cls(self, address)

        def body():
            self._install_code(address, contract_cls)
            instance.constructor(*args)
            return instance

        result = self._run_frame(frame, body)
        logger.debug(f"Deployed {contract_cls.__name__} at {address}")
        return result

    def contract_at(self, address: str, contract_cls: Optional[type] = None):
        """
        Return a handle for the code at `address`.

        `contract_cls` selects the interface to use, which may differ from
        the deployed class (e.g. the proxy implementation's interface at a
        delegate proxy's address).
        """
        address = to_checksum_address(address)
        cls = contract_cls or self._code.get(address)
        if cls is None:
            raise CallTargetMissing(f"No contract at {address}")
        return cls(self, address)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def sload(self, address: str, key: Hashable, default: Any = None) -> Any:
        return self._storage.get((address, key), default)

    def sstore(self, address: str, key: Hashable, value: Any) -> None:
        self._require_mutable("storage write")
        self._record('storage', (address, key), self._storage.get((address, key), _ABSENT))
        if value is None:
            self._storage.pop((address, key), None)
        else:
            self._storage[(address, key)] = value

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def emit(self, event) -> None:
        self._require_mutable("event emission")
        self._logs.append(event)

    def logs(self, event_type: Optional[type] = None) -> List[Any]:
        if event_type is None:
            return list(self._logs)
        return [log for log in self._logs if isinstance(log, event_type)]

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> int:
        """
        Create state snapshot for revert.

        Only a marker into the change journal is stored, so reverting costs
        time proportional to the writes made since the snapshot.

        Returns:
            Snapshot ID
        """
        self._snapshots.append(_Snapshot(
            journal_length=len(self._journal),
            log_length=len(self._logs),
        ))
        return len(self._snapshots) - 1

    def revert(self, snapshot_id: int) -> None:
        """
        Revert state to snapshot, dropping it and every newer snapshot.

        Args:
            snapshot_id: Snapshot ID from snapshot()
        """
        if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
            raise ValueError(f"Invalid snapshot ID: {snapshot_id}")

        snapshot = self._snapshots[snapshot_id]
        while len(self._journal) > snapshot.journal_length:
            self._undo(*self._journal.pop())
        del self._logs[snapshot.log_length:]

        self._snapshots = self._snapshots[:snapshot_id]

    def discard(self, snapshot_id: int) -> None:
        """Keep current state and forget the snapshot (and newer ones)."""
        if snapshot_id < 0 or snapshot_id >= len(self._snapshots):
            raise ValueError(f"Invalid snapshot ID: {snapshot_id}")
        self._snapshots = self._snapshots[:snapshot_id]
        # Nothing left to roll back to
        if not self._snapshots:
            self._journal.clear()

    def _record(self, kind: str, key: Any, previous: Any) -> None:
        if self._snapshots:
            self._journal.append((kind, key, previous))

    def _undo(self, kind: str, key: Any, previous: Any) -> None:
        table = {'account': self._accounts, 'code': self._code, 'storage': self._storage}[kind]
        if previous is _ABSENT:
            table.pop(key, None)
        else:
            table[key] = previous

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    @property
    def in_frame(self) -> bool:
        return bool(self._frames)

    def current_frame(self) -> Message:
        if not self._frames:
            raise NoActiveFrame("No call is executing")
        return self._frames[-1]

    def _in_static(self) -> bool:
        return bool(self._frames) and self._frames[-1].static

    def _require_mutable(self, action: str) -> None:
        if self._in_static():
            raise StaticCallViolation(f"{action} inside a static call")

    def _run_frame(self, frame: Message, body: Callable[[], Any]) -> Any:
        if frame.static and frame.value:
            raise StaticCallViolation("value transfer inside a static call")

        snapshot_id = self.snapshot()
        self._frames.append(frame)
        try:
            if not frame.delegate:
                self._transfer(frame.sender, frame.address, frame.value)
            result = body()
        except Exception:
            self.revert(snapshot_id)
            raise
        else:
            self.discard(snapshot_id)
            return result
        finally:
            self._frames.pop()

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def call(self, sender: str, target: str, data: bytes = b"", value: int = 0, static: bool = False) -> Any:
        """
        Low-level message call with ABI-encoded data.

        A call to an address without code only moves value.
        """
        sender = to_checksum_address(sender)
        target = to_checksum_address(target)
        frame = Message(
            sender=sender,
            value=value,
            address=target,
            code_address=target,
            static=static or self._in_static(),
        )
        cls = self._code.get(target)
        if cls is None:
            return self._run_frame(frame, lambda: None)

        instance = cls(self, target)
        return self._run_frame(frame, lambda: instance.dispatch_raw(data))

    def invoke(self, sender: str, target: str, fn: Selector, *args, value: int = 0) -> Any:
        """
        Typed message call.

        Args:
            sender: msg.sender of the new frame
            target: Contract address
            fn: Python method name or 4-byte selector
            *args: Decoded call arguments
            value: Value transferred with the call
        """
        return self._invoke(sender, target, fn, args, value, static=False)

    def static_invoke(self, sender: str, target: str, fn: Selector, *args) -> Any:
        """Typed read-only call. Any state change below it raises StaticCallViolation."""
        return self._invoke(sender, target, fn, args, 0, static=True)

    def _invoke(self, sender, target, fn, args, value, static) -> Any:
        sender = to_checksum_address(sender)
        target = to_checksum_address(target)
        cls = self._code.get(target)
        if cls is None:
            raise CallTargetMissing(f"No contract at {target}")

        frame = Message(
            sender=sender,
            value=value,
            address=target,
            code_address=target,
            static=static or self._in_static(),
        )
        instance = cls(self, target)
        return self._run_frame(frame, lambda: instance.dispatch(fn, args))

    def delegate_call(self, target: str, data: bytes) -> Any:
        """Run `target`'s code on raw data in the current frame's storage context."""
        target = to_checksum_address(target)
        cls = self._code.get(target)
        if cls is None:
            return None
        frame, instance = self._delegate_frame(target, cls)
        return self._run_frame(frame, lambda: instance.dispatch_raw(data))

    def delegate_invoke(self, target: str, fn: Selector, *args) -> Any:
        """Typed variant of delegate_call."""
        target = to_checksum_address(target)
        cls = self._code.get(target)
        if cls is None:
            raise UnknownSelector(f"No code at delegate target {target}")
        frame, instance = self._delegate_frame(target, cls)
        return self._run_frame(frame, lambda: instance.dispatch(fn, args))

    def _delegate_frame(self, target: str, cls: type):
        current = self.current_frame()
        frame = Message(
            sender=current.sender,
            value=current.value,
            address=current.address,
            code_address=target,
            static=current.static,
            delegate=True,
        )
        return frame, cls(self, current.address)

    def try_call(self, call: Callable[[], Any]) -> Tuple[bool, Any]:
        """
        Run a call with low-level semantics: a revert is reported, not raised.

        Only ExecutionReverted is caught; the callee's frame has already
        rolled back its own effects.
        """
        try:
            return True, call()
        except ExecutionReverted as e:
            logger.debug(f"Inner call reverted: {e.reason}")
            return False, e
