"""
Core types and pure functions for the token sale ledger.

This module provides the foundational pieces every other module builds on:
1. Constants: token metadata, sale parameters, the null address sentinel
2. Configuration: SaleConfig bundling the sale tunables
3. Enums: lifecycle State and CallResult
4. Exceptions: TokenError and the domain-specific error taxonomy
5. Protocols: TokenRecipient, ValueReceiver, Stateful capabilities
6. Store: Account records and the TokenStore arena passed to every component

Amounts are plain ints in the smallest denomination: token amounts carry
8 fractional digits, native currency amounts are in wei.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
import calendar
import copy
from typing import (
    Dict, Optional, Any, Protocol, Tuple, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Null address sentinel. Never a valid recipient, spender or bank.
NULL_ADDRESS = "0x0"

TOKEN_NAME = "Ponzi"
TOKEN_SYMBOL = "PT"
DECIMALS = 8

# 10^8 whole tokens at 8 fractional digits.
TOTAL_SUPPLY = 10 ** 16

# Share of the supply minted to the owner; the rest is the sale inventory.
OWNER_SHARE_PERCENT = 70

SECONDS_PER_DAY = 86_400

# Price grows by this many wei per base unit for every started day of sale.
BASE_DAILY_INCREMENT = 10 ** 7

# Day count at which the time-based price stops growing.
MAX_PRICE_DAYS = 12

# Per-buyer holding cap enforced by purchases (1000 whole tokens).
MAX_TOKENS_PER_ADDRESS = 1000 * 10 ** DECIMALS

# Share of purchase proceeds pushed to the owner; the bank gets the rest.
OWNER_PAYOUT_PERCENT = 5

# Owner keeps administrative reach for this long after the sale first opens.
# Observed boundary lies between 140 and 145 days.
DURATION_TO_ACCESS_FOR_OWNER = timedelta(days=144)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class SaleConfig:
    """
    Tunable parameters of a token sale.

    Defaults reproduce the deployed program. Tests and simulations can
    shorten the access window or change the cap without touching the code.
    """
    total_supply: int = TOTAL_SUPPLY
    owner_share_percent: int = OWNER_SHARE_PERCENT
    base_daily_increment: int = BASE_DAILY_INCREMENT
    max_price_days: int = MAX_PRICE_DAYS
    max_tokens_per_address: int = MAX_TOKENS_PER_ADDRESS
    owner_payout_percent: int = OWNER_PAYOUT_PERCENT
    access_window: timedelta = DURATION_TO_ACCESS_FOR_OWNER

    def __post_init__(self):
        if self.total_supply <= 0:
            raise ValueError(f"total_supply must be positive, got {self.total_supply}")
        if not 0 <= self.owner_share_percent <= 100:
            raise ValueError(f"owner_share_percent must be in [0, 100], got {self.owner_share_percent}")
        if not 0 <= self.owner_payout_percent <= 100:
            raise ValueError(f"owner_payout_percent must be in [0, 100], got {self.owner_payout_percent}")
        if self.base_daily_increment <= 0:
            raise ValueError("base_daily_increment must be positive")
        if self.max_price_days <= 0:
            raise ValueError("max_price_days must be positive")
        if self.max_tokens_per_address <= 0:
            raise ValueError("max_tokens_per_address must be positive")
        if self.access_window < timedelta(0):
            raise ValueError("access_window cannot be negative")

    @property
    def owner_supply(self) -> int:
        return self.total_supply * self.owner_share_percent // 100

    @property
    def sale_supply(self) -> int:
        return self.total_supply - self.owner_supply

    @property
    def max_price(self) -> int:
        return self.max_price_days * self.base_daily_increment


DEFAULT_CONFIG = SaleConfig()


# ============================================================================
# ENUMS
# ============================================================================

class State(Enum):
    """
    Lifecycle phase of the program.

    PRE_SALE: initial phase, nothing can be bought.
    SALE: purchases are open and the price clock is running.
    PUBLIC_USE: steady state; the owner may disown the program.
    """
    PRE_SALE = "PreSale"
    SALE = "Sale"
    PUBLIC_USE = "PublicUse"

    @classmethod
    def parse(cls, name: str) -> State:
        """Resolve a state from its external name ("PreSale", "Sale", "PublicUse")."""
        for state in cls:
            if state.value == name:
                return state
        raise InvalidArgumentError(f"Unknown state name: {name!r}")

    def __str__(self) -> str:
        return self.value


class CallResult(Enum):
    """
    Outcome of an entry-point call as recorded in the host's call log.

    APPLIED: the call committed.
    REJECTED: the call raised and every write was rolled back.
    REVERTED: the call returned, but an enclosing call or atomic block
              failed and rolled its writes back.
    """
    APPLIED = "applied"
    REJECTED = "rejected"
    REVERTED = "reverted"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class TokenError(Exception):
    """Base exception for all token program errors."""
    pass


class AuthorizationError(TokenError):
    """Raised when the caller is not allowed to invoke an entry point."""
    pass


class WrongStateError(TokenError):
    """Raised when an operation is not legal in the current lifecycle phase."""
    pass


class AccessExpiredError(AuthorizationError):
    """Raised when the owner's administrative grace window has lapsed."""
    pass


class InvalidArgumentError(TokenError, ValueError):
    """Raised for unknown state names and null or self addresses."""
    pass


class InsufficientBalanceError(TokenError):
    """Raised when a debit exceeds the account's token balance."""
    pass


class InsufficientAllowanceError(TokenError):
    """Raised when transfer_from exceeds the spender's allowance."""
    pass


class InsufficientPaymentError(TokenError):
    """Raised when the value sent does not cover the price of one base unit."""
    pass


class CapReachedError(TokenError):
    """Raised when the buyer already holds the per-address maximum."""
    pass


class SaleInventoryExhaustedError(InsufficientBalanceError):
    """Raised when the program's own balance cannot cover a purchase."""
    pass


class NothingToWithdrawError(TokenError):
    """Raised when withdraw() is called with no pending refund."""
    pass


class IncompatibleRecipientError(TokenError):
    """Raised when transfer_and_call targets an account without the notification capability."""
    pass


class NonZeroApprovalError(TokenError):
    """Raised when approve() would overwrite a nonzero allowance with another nonzero value."""
    pass


class InsufficientFundsError(TokenError):
    """Raised by the host when an account cannot cover a native currency transfer."""
    pass


# ============================================================================
# CALL RECORD
# ============================================================================

@dataclass(frozen=True, slots=True)
class CallRecord:
    """
    Immutable audit entry for one entry-point call.

    Attributes:
        sequence_number: Monotonic position in the host's call log
        call_id: Unique identifier (host + sequence + time)
        timestamp: Host time at which the call ran
        caller: Address that invoked the entry point
        target: Address of the program that was called
        entry_point: Name of the entry point
        value: Native currency attached to the call
        result: APPLIED, REJECTED or REVERTED
        reason: Error message for rejected calls, empty otherwise
        depth: Nesting level (0 for external calls, >0 for re-entrant calls)
    """
    sequence_number: int
    call_id: str
    timestamp: datetime
    caller: str
    target: str
    entry_point: str
    value: int
    result: CallResult
    reason: str = ""
    depth: int = 0

    def __repr__(self) -> str:
        status = {CallResult.APPLIED: "✓", CallResult.REVERTED: "↺"}.get(self.result, "✗")
        suffix = f": {self.reason}" if self.reason else ""
        return f"Call({status} {self.caller}→{self.target}.{self.entry_point} value={self.value}{suffix})"


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class TokenRecipient(Protocol):
    """
    Notification capability for transfer_and_call.

    A recipient declares support by implementing on_token_transfer. The
    callback runs after the ledger has been updated; raising from it aborts
    the whole transfer.
    """

    def on_token_transfer(self, sender: str, amount: int, data: bytes) -> None:
        ...


@runtime_checkable
class ValueReceiver(Protocol):
    """
    Contract account hook invoked by the host when native currency arrives.

    This is the re-entry point for outgoing payments: the hook may call back
    into any program before the sending call finishes.
    """

    def on_value_received(self, sender: str, amount: int) -> None:
        ...


@runtime_checkable
class Stateful(Protocol):
    """Contract whose state the host snapshots and restores around atomic calls."""

    def snapshot(self) -> Any:
        ...

    def restore(self, snapshot: Any) -> None:
        ...


# ============================================================================
# STORE
# ============================================================================

@dataclass(slots=True)
class Account:
    """
    Per-address record in the token store.

    Attributes:
        balance: token balance in base units
        allowances: spender address -> amount the spender may move
        pending_withdrawal: native currency owed to this address (refunds)
    """
    balance: int = 0
    allowances: Dict[str, int] = field(default_factory=dict)
    pending_withdrawal: int = 0


@dataclass
class TokenStore:
    """
    Complete mutable state of one deployed token program.

    Components never keep state of their own; they receive the store by
    reference and mutate it. The host rolls a call back by restoring a
    clone taken before the call.
    """
    owner: str
    bank: str
    price_setter: str = NULL_ADDRESS
    accounts: Dict[str, Account] = field(default_factory=dict)
    state: State = State.PRE_SALE
    first_entrance: int = 0
    fixed_price: Optional[int] = None
    disowned: bool = False
    initialized: bool = False
    total_supply: int = 0

    def account(self, address: str) -> Account:
        """Return the account record for address, creating an empty one if needed."""
        record = self.accounts.get(address)
        if record is None:
            record = self.accounts[address] = Account()
        return record

    def peek(self, address: str) -> Account:
        """Return the account record without registering a new one."""
        return self.accounts.get(address) or Account()

    def clone(self) -> TokenStore:
        return copy.deepcopy(self)

    def restore(self, other: TokenStore) -> None:
        """Overwrite every field in place so existing references see the restored state."""
        for name in self.__dataclass_fields__:
            setattr(self, name, copy.deepcopy(getattr(other, name)))


# ============================================================================
# HELPERS
# ============================================================================

def to_unix(moment: datetime) -> int:
    """
    Convert a datetime to whole UNIX seconds.

    Naive datetimes are interpreted as UTC so that results do not depend on
    the machine's local timezone.
    """
    if moment.tzinfo is None:
        return calendar.timegm(moment.timetuple())
    return int(moment.timestamp())


def require_valid_recipient(address: str, program_address: str, role: str = "recipient") -> None:
    """
    Reject the null address and the program's own address.

    Tokens or payouts sent to either would be unreachable.

    Raises:
        InvalidArgumentError: If address is empty, null or the program itself.
    """
    if not address or address == NULL_ADDRESS:
        raise InvalidArgumentError(f"{role} cannot be the null address")
    if address == program_address:
        raise InvalidArgumentError(f"{role} cannot be the program address {program_address}")


def require_amount(amount: int, name: str = "amount") -> None:
    """Amounts are non-negative ints."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidArgumentError(f"{name} must be int, got {type(amount).__name__}")
    if amount < 0:
        raise InvalidArgumentError(f"{name} cannot be negative, got {amount}")


def split_payout(spent: int, owner_percent: int) -> Tuple[int, int]:
    """
    Split purchase proceeds into (owner_share, bank_share).

    The owner share is rounded down; the bank receives the remainder so the
    two shares always add up to spent.
    """
    owner_share = spent * owner_percent // 100
    return owner_share, spent - owner_share
