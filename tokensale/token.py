"""
token.py - SaleToken, the deployed token program and its entry points

SaleToken wires the components together over a single TokenStore and
exposes the external surface. Every mutating entry point:

    1. opens an atomic, logged call on the Host
    2. checks the caller (AccessControl)
    3. checks the phase and the owner's access window (LifecycleStateMachine)
    4. mutates the ledger and/or escrow bookkeeping
    5. only then calls out (notification callback, value payouts)

If any step raises, the Host restores the store and all native balances to
their state before the call and re-raises the error.

Usage:
    host = Host(verbose=False)
    token = SaleToken(host, owner="deployer")
    token.initialize("deployer")
    token.set_state("deployer", "Sale")

    host.fund("alice", 10 ** 18)
    token.by_tokens("alice", 10 ** 18)
"""

from __future__ import annotations
import functools
from typing import Any, Callable, Dict, TypeVar, Union

from .core import (
    SaleConfig, State, TokenStore, DEFAULT_CONFIG,
    TOKEN_NAME, TOKEN_SYMBOL, DECIMALS,
    WrongStateError,
)
from .host import Host
from .ledger import BalanceLedger
from .lifecycle import LifecycleStateMachine
from .pricing import PricingEngine
from .escrow import SaleEscrow, PurchaseQuote
from .access import AccessControl


F = TypeVar("F", bound=Callable[..., Any])


def entry_point(method: F) -> F:
    """Run a non-payable entry point as one atomic, logged host call."""
    @functools.wraps(method)
    def wrapper(self: SaleToken, sender: str, *args, **kwargs):
        with self.host.call(sender, self.address, method.__name__):
            return method(self, sender, *args, **kwargs)
    return wrapper  # type: ignore[return-value]


def payable(method: F) -> F:
    """Like entry_point, but moves the attached value into the program first."""
    @functools.wraps(method)
    def wrapper(self: SaleToken, sender: str, value: int, *args, **kwargs):
        with self.host.call(sender, self.address, method.__name__, value):
            self.host.attach_value(sender, self.address, value)
            return method(self, sender, value, *args, **kwargs)
    return wrapper  # type: ignore[return-value]


class SaleToken:
    """
    Fixed-supply token with a built-in, time-priced sale.

    The program lives at `address` on the host. Sending native currency to
    that address is a purchase, exactly like calling by_tokens().
    """

    def __init__(
        self,
        host: Host,
        owner: str,
        address: str = "token",
        config: SaleConfig = DEFAULT_CONFIG,
        name: str = TOKEN_NAME,
        symbol: str = TOKEN_SYMBOL,
        decimals: int = DECIMALS,
    ):
        self.host = host
        self.address = address
        self.config = config
        self.name = name
        self.symbol = symbol
        self.decimals = decimals

        self.store = TokenStore(owner=owner, bank=owner)
        clock = lambda: host.now
        self.ledger = BalanceLedger(self.store, address, host.code_at)
        self.lifecycle = LifecycleStateMachine(self.store, clock, config)
        self.pricing = PricingEngine(self.store, clock, config)
        self.access = AccessControl(self.store, address, self.lifecycle)
        self.escrow = SaleEscrow(
            self.store, host, address,
            self.ledger, self.pricing, self.lifecycle, config,
        )
        host.deploy(address, self)

    def __repr__(self) -> str:
        return f"SaleToken({self.symbol} at {self.address}, state={self.store.state})"

    # ========================================================================
    # Stateful PROTOCOL (used by Host.atomic)
    # ========================================================================

    def snapshot(self) -> TokenStore:
        return self.store.clone()

    def restore(self, snapshot: TokenStore) -> None:
        self.store.restore(snapshot)

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def state(self) -> State:
        return self.store.state

    @property
    def owner(self) -> str:
        return self.store.owner

    @property
    def bank(self) -> str:
        return self.access.bank

    @property
    def price_setter(self) -> str:
        return self.access.price_setter

    @property
    def disowned(self) -> bool:
        return self.access.disowned

    @property
    def initialized(self) -> bool:
        return self.store.initialized

    @property
    def first_entrance_to_sale_state_unix(self) -> int:
        return self.store.first_entrance

    @property
    def total_supply(self) -> int:
        return self.store.total_supply

    def balance_of(self, address: str) -> int:
        return self.ledger.balance_of(address)

    def allowance(self, owner: str, spender: str) -> int:
        return self.ledger.allowance(owner, spender)

    def pending_withdrawals(self, address: str) -> int:
        return self.escrow.pending_withdrawals(address)

    def token_price_in_wei(self) -> int:
        return self.pricing.token_price_in_wei()

    def native_balance(self) -> int:
        """Wei held by the program (pending refunds plus retained dust)."""
        return self.host.native_balance(self.address)

    def quote(self, buyer: str, value: int) -> PurchaseQuote:
        """Preview what by_tokens(buyer, value) would do right now."""
        return self.escrow.quote(buyer, value)

    def verify_supply(self) -> Dict[str, Any]:
        return self.ledger.verify_supply()

    # ========================================================================
    # INITIALIZATION
    # ========================================================================

    @entry_point
    def initialize(self, sender: str) -> None:
        """
        Mint the fixed supply: the owner share to the owner, the rest to the
        program as sale inventory. The owner is also allowed to move the
        whole inventory out of the program via transfer_from.

        Raises:
            AuthorizationError: If sender is not the owner
            WrongStateError: If the program was already initialized
        """
        self.access.require_owner(sender)
        if self.store.initialized:
            raise WrongStateError("program is already initialized")
        self.ledger.mint(self.store.owner, self.config.owner_supply)
        self.ledger.mint(self.address, self.config.sale_supply)
        self.ledger.grant(self.address, self.store.owner, self.config.sale_supply)
        self.store.initialized = True

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    @entry_point
    def set_state(self, sender: str, new_state: Union[str, State]) -> State:
        """
        Move the program into new_state ("PreSale", "Sale" or "PublicUse").

        Returns the previous state.

        Raises:
            AuthorizationError: If sender is not the owner or the program is disowned
            InvalidArgumentError: If new_state is not a known state name
            AccessExpiredError: If the owner's access window has lapsed in PublicUse
        """
        self.access.require_owner(sender)
        target = new_state if isinstance(new_state, State) else State.parse(new_state)
        self.lifecycle.require_access()
        return self.lifecycle.transition(target)

    @entry_point
    def set_bank(self, sender: str, new_bank: str) -> None:
        self.access.require_owner(sender)
        self.lifecycle.require_access()
        self.access.set_bank(new_bank)

    @entry_point
    def set_price_setter(self, sender: str, new_price_setter: str) -> None:
        self.access.require_owner(sender)
        self.lifecycle.require_access()
        self.access.set_price_setter(new_price_setter)

    @entry_point
    def set_and_fix_token_price_in_wei(self, sender: str, price: int) -> None:
        """Fix the price at `price` wei per base unit (owner or price setter)."""
        self.access.require_price_authority(sender)
        self.lifecycle.require_access()
        self.pricing.set_fixed_price(price)

    @entry_point
    def unfix_token_price_in_wei(self, sender: str) -> None:
        """Return to the time-based price (owner or price setter)."""
        self.access.require_price_authority(sender)
        self.lifecycle.require_access()
        self.pricing.clear_fixed_price()

    @entry_point
    def disown(self, sender: str) -> None:
        """
        Renounce every administrative privilege, permanently.

        Raises:
            AuthorizationError: If sender is not the owner or already disowned
            WrongStateError: If the program has not reached PublicUse
        """
        self.access.require_owner(sender)
        self.access.disown()

    # ========================================================================
    # LEDGER
    # ========================================================================

    @entry_point
    def transfer(self, sender: str, to: str, amount: int) -> bool:
        return self.ledger.transfer(sender, to, amount)

    @entry_point
    def transfer_from(self, sender: str, source: str, to: str, amount: int) -> bool:
        return self.ledger.transfer_from(sender, source, to, amount)

    @entry_point
    def approve(self, sender: str, spender: str, amount: int) -> bool:
        return self.ledger.approve(sender, spender, amount)

    @entry_point
    def increase_approval(self, sender: str, spender: str, delta: int) -> bool:
        return self.ledger.increase_approval(sender, spender, delta)

    @entry_point
    def decrease_approval(self, sender: str, spender: str, delta: int) -> bool:
        return self.ledger.decrease_approval(sender, spender, delta)

    @entry_point
    def transfer_and_call(self, sender: str, to: str, amount: int, data: bytes = b"") -> bool:
        return self.ledger.transfer_and_call(sender, to, amount, data)

    @entry_point
    def transfer_all_and_call(self, sender: str, to: str, data: bytes = b"") -> bool:
        return self.ledger.transfer_all_and_call(sender, to, data)

    # ========================================================================
    # SALE
    # ========================================================================

    @payable
    def by_tokens(self, sender: str, value: int) -> PurchaseQuote:
        """
        Buy tokens with `value` wei at the current price.

        Raises:
            WrongStateError: If the program is not in Sale
            InsufficientPaymentError: If value is below the unit price
            CapReachedError: If sender already holds the per-address maximum
            SaleInventoryExhaustedError: If the inventory cannot cover the purchase
            InsufficientFundsError: If sender cannot pay value
        """
        return self.escrow.purchase(sender, value)

    def on_value_received(self, sender: str, amount: int) -> None:
        """Plain value sent to the program address buys tokens."""
        with self.host.call(sender, self.address, "fallback", amount):
            self.escrow.purchase(sender, amount)

    @entry_point
    def withdraw(self, sender: str) -> int:
        """
        Pull pending refunds; returns the amount sent.

        Raises:
            NothingToWithdrawError: If nothing is pending for sender
        """
        return self.escrow.withdraw(sender)
