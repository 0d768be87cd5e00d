"""
ERC-20 Token

A plain fungible token contract for exercising the exchange end to end:
  - ERC-20 interface (transfer, approve, transferFrom, balanceOf, allowance)
  - Open mint, as in the reference test token
  - Transfer / Approval events on the ledger log
"""

from dataclasses import dataclass

from ..chain.contract import Contract, Event, external, view
from ..constants import ZERO_ADDRESS
from ..exceptions import ExecutionReverted
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class ERC20Error(ExecutionReverted):
    """Base revert for token operations."""
    default_reason = "ERC20: operation failed"


class InsufficientBalanceError(ERC20Error):
    default_reason = "ERC20: transfer amount exceeds balance"


class InsufficientAllowanceError(ERC20Error):
    default_reason = "ERC20: insufficient allowance"


class ZeroAddressError(ERC20Error):
    default_reason = "ERC20: zero address"


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Transfer(Event):
    """Emitted on every balance movement, including mints."""
    sender: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class Approval(Event):
    owner: str
    spender: str
    amount: int


# ══════════════════════════════════════════════════════════════════════
#  TOKEN
# ══════════════════════════════════════════════════════════════════════

class ERC20Token(Contract):
    """
    Fungible token with balances and allowances in ledger storage.

    Constructor:
        name: Human-readable name
        symbol: Ticker
        decimals: Display decimals (0-18)
    """

    def constructor(self, name: str = "Test Token", symbol: str = "TST", decimals: int = 18) -> None:
        if not name:
            raise ERC20Error("Token name cannot be empty")
        if not symbol:
            raise ERC20Error("Token symbol cannot be empty")
        if not 0 <= decimals <= 18:
            raise ERC20Error(f"Decimals must be 0-18, got {decimals}")
        self.sstore('name', name)
        self.sstore('symbol', symbol)
        self.sstore('decimals', decimals)

    # ── Read-only ────────────────────────────────────────────────────

    @view("name()")
    def name(self) -> str:
        return self.sload('name', '')

    @view("symbol()")
    def symbol(self) -> str:
        return self.sload('symbol', '')

    @view("decimals()")
    def decimals(self) -> int:
        return self.sload('decimals', 18)

    @view("totalSupply()")
    def total_supply(self) -> int:
        return self.sload('total_supply', 0)

    @view("balanceOf(address)")
    def balance_of(self, account: str) -> int:
        return self.sload(('balance', account), 0)

    @view("allowance(address,address)")
    def allowance(self, owner: str, spender: str) -> int:
        return self.sload(('allowance', owner, spender), 0)

    # ── Mutating ─────────────────────────────────────────────────────

    @external("transfer(address,uint256)")
    def transfer(self, recipient: str, amount: int) -> bool:
        self._transfer(self.msg.sender, recipient, amount)
        return True

    @external("approve(address,uint256)")
    def approve(self, spender: str, amount: int) -> bool:
        self._approve(self.msg.sender, spender, amount)
        return True

    @external("transferFrom(address,address,uint256)")
    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        self._transfer(sender, recipient, amount)
        spender = self.msg.sender
        current = self.allowance(sender, spender)
        if current < amount:
            raise InsufficientAllowanceError()
        self._approve(sender, spender, current - amount)
        return True

    @external("mint(address,uint256)")
    def mint(self, account: str, amount: int) -> bool:
        if account == ZERO_ADDRESS:
            raise ZeroAddressError("ERC20: mint to the zero address")
        self.sstore('total_supply', self.total_supply() + amount)
        self.sstore(('balance', account), self.balance_of(account) + amount)
        self.emit(Transfer, sender=ZERO_ADDRESS, recipient=account, amount=amount)
        logger.debug(f"[{self.symbol()}] Minted {amount} to {account}")
        return True

    # ── Internal ─────────────────────────────────────────────────────

    def _transfer(self, sender: str, recipient: str, amount: int) -> None:
        if sender == ZERO_ADDRESS or recipient == ZERO_ADDRESS:
            raise ZeroAddressError("ERC20: transfer from or to the zero address")
        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalanceError()
        self.sstore(('balance', sender), balance - amount)
        self.sstore(('balance', recipient), self.balance_of(recipient) + amount)
        self.emit(Transfer, sender=sender, recipient=recipient, amount=amount)

    def _approve(self, owner: str, spender: str, amount: int) -> None:
        if spender == ZERO_ADDRESS:
            raise ZeroAddressError("ERC20: approve to the zero address")
        self.sstore(('allowance', owner, spender), amount)
        self.emit(Approval, owner=owner, spender=spender, amount=amount)
