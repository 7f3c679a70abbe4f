"""
escrow.py - Token purchases, payout splitting and refund withdrawals

This module provides the sale path:
1. quote_purchase() - pure function computing what a purchase would do
2. SaleEscrow.purchase() - applies a quote: ledger move, refund credit,
   then the owner/bank payouts
3. SaleEscrow.withdraw() - pull payment of accumulated refunds

Payment pattern:
    Purchase (push to trusted parties):
        tokens  program -> buyer            granted units
        wei     program -> owner            owner_payout_percent of spent
        wei     program -> bank             the rest of spent
        pending[buyer] += value - spent     (capped purchases, pulled later)

    Withdraw (pull by the untrusted buyer):
        pending[buyer] = 0  first, then  wei program -> buyer

Every write to the store happens before any value leaves the program, so
a re-entrant call made from a payout or refund hook sees finished
bookkeeping.
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import (
    SaleConfig, State, TokenStore,
    InsufficientPaymentError, CapReachedError, NothingToWithdrawError,
    SaleInventoryExhaustedError,
    split_payout, require_amount,
)
from .host import Host
from .ledger import BalanceLedger
from .lifecycle import LifecycleStateMachine
from .pricing import PricingEngine


@dataclass(frozen=True, slots=True)
class PurchaseQuote:
    """
    Outcome of a purchase, computed before anything is written.

    Attributes:
        buyer: Address receiving the tokens
        value: Wei sent with the purchase
        price: Wei per base unit at the time of purchase
        requested: Units the value could pay for (value // price)
        granted: Units actually sold after the per-address cap
        spent: granted * price
        refund: value - spent when the cap cut the purchase, else 0;
            credited to pending withdrawals
        dust: division remainder of an uncapped purchase, kept by the program
        owner_share: Part of spent pushed to the owner
        bank_share: Part of spent pushed to the bank
    """
    buyer: str
    value: int
    price: int
    requested: int
    granted: int
    spent: int
    refund: int
    dust: int
    owner_share: int
    bank_share: int


def quote_purchase(
    buyer: str,
    value: int,
    price: int,
    buyer_balance: int,
    config: SaleConfig,
) -> PurchaseQuote:
    """
    Work out units, refund and payouts for a purchase.

    Raises:
        InsufficientPaymentError: If value does not cover one base unit
        CapReachedError: If the buyer already holds the per-address maximum

    Example:
        quote = quote_purchase("alice", 2 * 10**18, 10**7, 0, DEFAULT_CONFIG)
        # quote.granted == 1000 * 10**8 (cap), quote.refund == 10**18
    """
    require_amount(value, "value")
    if price <= 0 or value < price:
        raise InsufficientPaymentError(
            f"sent {value} wei, one base unit costs {price} wei"
        )
    requested = value // price
    room = max(config.max_tokens_per_address - buyer_balance, 0)
    granted = min(requested, room)
    if granted == 0:
        raise CapReachedError(
            f"{buyer} already holds {buyer_balance}, cap is {config.max_tokens_per_address}"
        )
    spent = granted * price
    owner_share, bank_share = split_payout(spent, config.owner_payout_percent)
    # Uncapped purchases keep the division remainder as dust; a capped
    # purchase refunds everything that was not spent.
    refund = value - spent if granted < requested else 0
    return PurchaseQuote(
        buyer=buyer,
        value=value,
        price=price,
        requested=requested,
        granted=granted,
        spent=spent,
        refund=refund,
        dust=value - spent - refund,
        owner_share=owner_share,
        bank_share=bank_share,
    )


class SaleEscrow:
    """
    Executes purchases and refund withdrawals for one token program.

    The value attached to a purchase must already sit in the program's
    native balance when purchase() runs; SaleToken attaches it first.
    """

    def __init__(
        self,
        store: TokenStore,
        host: Host,
        program_address: str,
        ledger: BalanceLedger,
        pricing: PricingEngine,
        lifecycle: LifecycleStateMachine,
        config: SaleConfig,
    ):
        self.store = store
        self.host = host
        self.program_address = program_address
        self.ledger = ledger
        self.pricing = pricing
        self.lifecycle = lifecycle
        self.config = config

    def pending_withdrawals(self, address: str) -> int:
        return self.store.peek(address).pending_withdrawal

    def total_pending(self) -> int:
        return sum(record.pending_withdrawal for record in self.store.accounts.values())

    def quote(self, buyer: str, value: int) -> PurchaseQuote:
        """Quote a purchase at the current price without executing it."""
        self.lifecycle.require_state(State.SALE)
        return quote_purchase(
            buyer,
            value,
            self.pricing.token_price_in_wei(),
            self.ledger.balance_of(buyer),
            self.config,
        )

    def purchase(self, buyer: str, value: int) -> PurchaseQuote:
        """
        Sell tokens from the program's inventory to buyer.

        Raises:
            WrongStateError: If the program is not in Sale
            InsufficientPaymentError: If value is below the unit price
            CapReachedError: If buyer is already at the per-address cap
            SaleInventoryExhaustedError: If the program cannot cover the granted units
        """
        quote = self.quote(buyer, value)

        # Effects
        self.ledger.move(
            self.program_address, buyer, quote.granted,
            error=SaleInventoryExhaustedError,
        )
        if quote.refund:
            self.store.account(buyer).pending_withdrawal += quote.refund

        # Interactions
        if quote.owner_share:
            self.host.send_value(self.program_address, self.store.owner, quote.owner_share)
        if quote.bank_share:
            self.host.send_value(self.program_address, self.store.bank, quote.bank_share)
        return quote

    def withdraw(self, payee: str) -> int:
        """
        Pay out payee's pending refunds and return the amount sent.

        The pending balance is zeroed before the value is sent, so a
        re-entrant withdraw from the payee's hook finds nothing owed.

        Raises:
            NothingToWithdrawError: If nothing is pending for payee
        """
        amount = self.pending_withdrawals(payee)
        if amount <= 0:
            raise NothingToWithdrawError(f"no pending withdrawal for {payee}")
        self.store.account(payee).pending_withdrawal = 0
        self.host.send_value(self.program_address, payee, amount)
        return amount
