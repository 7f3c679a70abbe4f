#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: A Token Sale from Deployment to Disown

A walkthrough of one complete sale. Each step builds on the previous one.
Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Setup          - Host, deployment, initialization
  4-6:  The Sale       - Opening the sale, capped purchases, the price clock
  7-8:  Refunds        - Pull-pattern withdrawals, rejected calls roll back
  9-10: After the Sale - PublicUse, the owner's access window, disown

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import sys

from tokensale import Host, SaleToken, State, TokenError, CallResult


# ============================================================================
# CONFIGURATION
# ============================================================================

ETH = 10 ** 18
WHOLE_TOKEN = 10 ** 8


@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2018, 3, 1, 12, 0, 0)
    owner: str = "deployer"
    bank: str = "bank"
    buyer_funding: int = 5 * ETH
    days_between_purchases: int = 4


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def tokens(amount: int) -> str:
    return f"{amount / WHOLE_TOKEN:,.8f} PT"


def eth(amount: int) -> str:
    return f"{amount / ETH:,.4f} ETH"


# ============================================================================
# SETUP
# ============================================================================

def step_01_host():
    step_header(1, "The Host",
        "The host owns time and native currency; programs only see what it gives them.")

    print(">>> host = Host(initial_time=datetime(2018, 3, 1, 12, 0), verbose=True)")
    host = Host(initial_time=CONFIG.start_time, verbose=True, name="demo")
    for buyer in ("alice", "bob"):
        host.fund(buyer, CONFIG.buyer_funding)

    section_header("Initial State")
    print(f"Current time:  {host.current_time}")
    print(f"alice:         {eth(host.native_balance('alice'))}")
    print(f"bob:           {eth(host.native_balance('bob'))}")
    return host


def step_02_deploy(host: Host):
    step_header(2, "Deployment",
        "The deployer becomes owner and bank; nothing is minted yet.")

    print(f">>> token = SaleToken(host, owner={CONFIG.owner!r})")
    token = SaleToken(host, owner=CONFIG.owner)
    print(f"Name/symbol:   {token.name} / {token.symbol} ({token.decimals} decimals)")
    print(f"State:         {token.state}")
    print(f"Owner / bank:  {token.owner} / {token.bank}")
    print(f"Total supply:  {token.total_supply}")
    return token


def step_03_initialize(token: SaleToken):
    step_header(3, "Initialization",
        "Mint the fixed supply: 70% to the owner, 30% held by the program for sale.")

    token.initialize(CONFIG.owner)
    token.set_bank(CONFIG.owner, CONFIG.bank)

    section_header("Balances")
    print(f"Owner:         {tokens(token.balance_of(CONFIG.owner))}")
    print(f"Program:       {tokens(token.balance_of(token.address))}")
    print(f"Bank:          {token.bank}")
    print(f"Supply check:  {token.verify_supply()}")
    return token


# ============================================================================
# THE SALE
# ============================================================================

def step_04_open_sale(host: Host, token: SaleToken):
    step_header(4, "Opening the Sale",
        "The first entry into Sale starts the price clock.")

    token.set_state(CONFIG.owner, "Sale")
    print(f"First entrance (unix): {token.first_entrance_to_sale_state_unix}")
    print(f"Price today:           {token.token_price_in_wei()} wei per base unit")

    section_header("Price projection (numpy)")
    projection = token.pricing.schedule(15)
    for day, price in enumerate(projection, start=1):
        print(f"  day {day:2d}: {int(price):>12,d} wei")


def step_05_capped_purchase(host: Host, token: SaleToken):
    step_header(5, "A Capped Purchase",
        "No address can buy past 1000 PT; the excess becomes a pending refund.")

    quote = token.by_tokens("alice", 2 * ETH)
    print(f"Requested:     {tokens(quote.requested)}")
    print(f"Granted:       {tokens(quote.granted)}")
    print(f"Owner payout:  {eth(quote.owner_share)}")
    print(f"Bank payout:   {eth(quote.bank_share)}")
    print(f"Refund owed:   {eth(token.pending_withdrawals('alice'))}")
    print(f"Program holds: {eth(token.native_balance())}")


def step_06_price_clock(host: Host, token: SaleToken):
    step_header(6, "The Price Clock",
        "Every started day of the sale raises the price until day 12.")

    host.advance(timedelta(days=CONFIG.days_between_purchases))
    print(f"Now:           {host.current_time}")
    print(f"Price:         {token.token_price_in_wei()} wei per base unit")
    quote = token.by_tokens("bob", ETH)
    print(f"bob paid 1 ETH and received {tokens(quote.granted)}")


# ============================================================================
# REFUNDS
# ============================================================================

def step_07_withdraw(host: Host, token: SaleToken):
    step_header(7, "Pulling a Refund",
        "Refunds are never pushed; the buyer withdraws them.")

    before = host.native_balance("alice")
    amount = token.withdraw("alice")
    print(f"Withdrawn:     {eth(amount)}")
    print(f"alice:         {eth(before)} -> {eth(host.native_balance('alice'))}")
    print(f"Pending now:   {eth(token.pending_withdrawals('alice'))}")


def step_08_rejections(host: Host, token: SaleToken):
    step_header(8, "Rejected Calls",
        "A failing call changes nothing and is still recorded.")

    attempts = [
        ("alice buys again at the cap", lambda: token.by_tokens("alice", ETH)),
        ("alice withdraws twice", lambda: token.withdraw("alice")),
        ("mallory changes the bank", lambda: token.set_bank("mallory", "mallory")),
    ]
    for label, attempt in attempts:
        try:
            attempt()
        except TokenError as exc:
            print(f"  {label}: {type(exc).__name__}")

    print(f"\nRejected calls in log: {len(host.rejected_calls())}")
    print(f"Supply check:          {token.verify_supply()['valid']}")


# ============================================================================
# AFTER THE SALE
# ============================================================================

def step_09_public_use(host: Host, token: SaleToken):
    step_header(9, "Public Use and the Access Window",
        "144 days after the sale opened, an owner in PublicUse loses admin reach.")

    token.set_state(CONFIG.owner, State.PUBLIC_USE)
    token.transfer("alice", "bob", 10 * WHOLE_TOKEN)
    host.advance(timedelta(days=150))
    try:
        token.set_bank(CONFIG.owner, "new_bank")
    except TokenError as exc:
        print(f"set_bank after the window: {type(exc).__name__}")


def step_10_disown(host: Host, token: SaleToken):
    step_header(10, "Disown",
        "The owner renounces control for good; the ledger keeps working.")

    token.disown(CONFIG.owner)
    token.transfer("bob", "alice", 1 * WHOLE_TOKEN)
    print(f"Disowned:      {token.disowned}")

    section_header("Final balances")
    for holder, balance in token.ledger.holders().items():
        print(f"  {holder:<10} {tokens(balance)}")

    applied = sum(1 for r in host.call_log if r.result is CallResult.APPLIED)
    print(f"\nCalls applied: {applied}, rejected: {len(host.rejected_calls())}")
    print(f"Native supply: {eth(host.total_native_supply())}")


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       TOKEN SALE - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    host = step_01_host()
    wait_for_enter()

    token = step_02_deploy(host)
    wait_for_enter()

    step_03_initialize(token)
    wait_for_enter()

    step_04_open_sale(host, token)
    wait_for_enter()

    step_05_capped_purchase(host, token)
    wait_for_enter()

    step_06_price_clock(host, token)
    wait_for_enter()

    step_07_withdraw(host, token)
    wait_for_enter()

    step_08_rejections(host, token)
    wait_for_enter()

    step_09_public_use(host, token)
    wait_for_enter()

    step_10_disown(host, token)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See tokensale/token.py for the entry points
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
