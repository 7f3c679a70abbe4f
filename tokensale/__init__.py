"""
tokensale - Fixed-supply token with a built-in, time-priced sale

A token program running on an in-process execution host: a ledger of
balances and allowances, a PreSale -> Sale -> PublicUse lifecycle, a price
that climbs daily during the sale, capped purchases with pull-pattern
refunds, and an owner whose reach expires after the sale.

Usage:
    from datetime import timedelta
    from tokensale import Host, SaleToken

    host = Host(verbose=False)
    token = SaleToken(host, owner="deployer")
    token.initialize("deployer")
    token.set_state("deployer", "Sale")

    host.fund("alice", 2 * 10 ** 18)
    token.by_tokens("alice", 2 * 10 ** 18)   # capped: half comes back
    token.withdraw("alice")                  # pull the refund

    host.advance(timedelta(days=3))
    token.token_price_in_wei()               # 4 * 10 ** 7
"""

# Core types
from .core import (
    NULL_ADDRESS,
    TOKEN_NAME,
    TOKEN_SYMBOL,
    DECIMALS,
    TOTAL_SUPPLY,
    OWNER_SHARE_PERCENT,
    SECONDS_PER_DAY,
    BASE_DAILY_INCREMENT,
    MAX_PRICE_DAYS,
    MAX_TOKENS_PER_ADDRESS,
    OWNER_PAYOUT_PERCENT,
    DURATION_TO_ACCESS_FOR_OWNER,
    SaleConfig,
    DEFAULT_CONFIG,
    State,
    CallResult,
    CallRecord,
    TokenRecipient,
    ValueReceiver,
    Stateful,
    Account,
    TokenStore,
    TokenError,
    AuthorizationError,
    WrongStateError,
    AccessExpiredError,
    InvalidArgumentError,
    InsufficientBalanceError,
    InsufficientAllowanceError,
    InsufficientPaymentError,
    CapReachedError,
    SaleInventoryExhaustedError,
    NothingToWithdrawError,
    IncompatibleRecipientError,
    NonZeroApprovalError,
    InsufficientFundsError,
    to_unix,
    split_payout,
)

# Host
from .host import Host, DEFAULT_GENESIS_TIME

# Components
from .ledger import BalanceLedger
from .lifecycle import LifecycleStateMachine, owner_access_expired
from .pricing import PricingEngine, calc_token_price, price_schedule, days_until_price_cap
from .escrow import SaleEscrow, PurchaseQuote, quote_purchase
from .access import AccessControl

# Program
from .token import SaleToken


__all__ = [
    # Constants
    'NULL_ADDRESS', 'TOKEN_NAME', 'TOKEN_SYMBOL', 'DECIMALS', 'TOTAL_SUPPLY',
    'OWNER_SHARE_PERCENT', 'SECONDS_PER_DAY', 'BASE_DAILY_INCREMENT',
    'MAX_PRICE_DAYS', 'MAX_TOKENS_PER_ADDRESS', 'OWNER_PAYOUT_PERCENT',
    'DURATION_TO_ACCESS_FOR_OWNER',
    # Core
    'SaleConfig', 'DEFAULT_CONFIG', 'State', 'CallResult', 'CallRecord',
    'TokenRecipient', 'ValueReceiver', 'Stateful', 'Account', 'TokenStore',
    'to_unix', 'split_payout',
    # Errors
    'TokenError', 'AuthorizationError', 'WrongStateError', 'AccessExpiredError',
    'InvalidArgumentError', 'InsufficientBalanceError', 'InsufficientAllowanceError',
    'InsufficientPaymentError', 'CapReachedError', 'SaleInventoryExhaustedError',
    'NothingToWithdrawError', 'IncompatibleRecipientError', 'NonZeroApprovalError',
    'InsufficientFundsError',
    # Host
    'Host', 'DEFAULT_GENESIS_TIME',
    # Components
    'BalanceLedger', 'LifecycleStateMachine', 'owner_access_expired',
    'PricingEngine', 'calc_token_price', 'price_schedule', 'days_until_price_cap',
    'SaleEscrow', 'PurchaseQuote', 'quote_purchase',
    'AccessControl',
    # Program
    'SaleToken',
]
