"""
test_sale_scenarios.py - End-to-end tests of the deployed token program

Every test goes through SaleToken entry points on a Host, exactly as an
external caller would. Scenarios:
- initialization and metadata
- administrative entry points and their guards
- ledger entry points
- purchases, payouts, refunds and withdrawals
- owner access window
- the full PreSale -> Sale -> PublicUse -> disowned lifecycle
"""

import pytest
from datetime import timedelta

from tokensale import (
    SaleToken, SaleConfig, State, CallResult, NULL_ADDRESS,
    AuthorizationError, AccessExpiredError, WrongStateError,
    InvalidArgumentError, InsufficientBalanceError, InsufficientAllowanceError,
    InsufficientPaymentError, CapReachedError, SaleInventoryExhaustedError,
    NothingToWithdrawError,
    IncompatibleRecipientError, NonZeroApprovalError, InsufficientFundsError,
)

from tests.mocks import (
    ETH, WHOLE_TOKEN, CAP, OWNER, BANK,
    RecordingRecipient, PlainContract, deploy_token, native_snapshot,
)


# =============================================================================
# INITIALIZATION
# =============================================================================

class TestInitialization:
    """Tests for deployment defaults and initialize()."""

    def test_metadata(self, raw_token):
        assert raw_token.name == "Ponzi"
        assert raw_token.symbol == "PT"
        assert raw_token.decimals == 8

    def test_deployer_is_owner_and_bank(self, raw_token):
        assert raw_token.owner == OWNER
        assert raw_token.bank == OWNER

    def test_defaults_before_initialize(self, raw_token):
        assert raw_token.state is State.PRE_SALE
        assert raw_token.total_supply == 0
        assert raw_token.first_entrance_to_sale_state_unix == 0
        assert raw_token.token_price_in_wei() == 0
        assert raw_token.price_setter == NULL_ADDRESS
        assert not raw_token.initialized

    def test_non_owner_cannot_initialize(self, raw_token):
        with pytest.raises(AuthorizationError):
            raw_token.initialize("mallory")
        assert raw_token.total_supply == 0

    def test_initialize_mints_supply(self, raw_token):
        raw_token.initialize(OWNER)
        assert raw_token.total_supply == 10 ** 16
        assert raw_token.balance_of(OWNER) == 7 * 10 ** 15
        assert raw_token.balance_of(raw_token.address) == 3 * 10 ** 15
        assert raw_token.verify_supply()['valid']

    def test_owner_may_move_sale_inventory(self, raw_token):
        raw_token.initialize(OWNER)
        assert raw_token.allowance(raw_token.address, OWNER) == 3 * 10 ** 15
        raw_token.transfer_from(OWNER, raw_token.address, "alice", 10)
        assert raw_token.balance_of("alice") == 10

    def test_initialize_only_once(self, raw_token):
        raw_token.initialize(OWNER)
        with pytest.raises(WrongStateError):
            raw_token.initialize(OWNER)
        assert raw_token.total_supply == 10 ** 16


# =============================================================================
# ADMINISTRATION
# =============================================================================

class TestSetState:
    """Tests for set_state()."""

    def test_enter_sale_records_time(self, token, host):
        token.set_state(OWNER, "Sale")
        assert token.state is State.SALE
        assert token.first_entrance_to_sale_state_unix == host.now

    @pytest.mark.parametrize("name", ["PreSale", "PublicUse"])
    def test_other_states_leave_anchor_unset(self, token, name):
        token.set_state(OWNER, name)
        assert str(token.state) == name
        assert token.first_entrance_to_sale_state_unix == 0

    def test_anchor_survives_reentry(self, token, host):
        token.set_state(OWNER, "Sale")
        opened = host.now
        host.advance(timedelta(days=2))
        token.set_state(OWNER, "PreSale")
        token.set_state(OWNER, "Sale")
        assert token.first_entrance_to_sale_state_unix == opened

    def test_returns_previous_state(self, token):
        assert token.set_state(OWNER, "Sale") is State.PRE_SALE

    def test_non_owner_rejected(self, token):
        with pytest.raises(AuthorizationError):
            token.set_state("mallory", "Sale")
        assert token.state is State.PRE_SALE

    def test_unknown_state_rejected(self, token):
        with pytest.raises(InvalidArgumentError):
            token.set_state(OWNER, "Closed")


class TestBankAndPriceSetter:
    """Tests for set_bank() and set_price_setter()."""

    def test_set_bank(self, raw_token):
        raw_token.set_bank(OWNER, "vault")
        assert raw_token.bank == "vault"

    def test_set_bank_non_owner(self, raw_token):
        with pytest.raises(AuthorizationError):
            raw_token.set_bank("mallory", "vault")

    @pytest.mark.parametrize("bank", [NULL_ADDRESS, "token"])
    def test_set_bank_invalid(self, raw_token, bank):
        with pytest.raises(InvalidArgumentError):
            raw_token.set_bank(OWNER, bank)

    def test_set_price_setter(self, token):
        token.set_price_setter(OWNER, "oracle")
        assert token.price_setter == "oracle"

    def test_set_price_setter_non_owner(self, token):
        with pytest.raises(AuthorizationError):
            token.set_price_setter("oracle", "oracle")


class TestFixedPrice:
    """Tests for set_and_fix_token_price_in_wei() and unfix_token_price_in_wei()."""

    def test_owner_fixes_price(self, sale_token):
        sale_token.set_and_fix_token_price_in_wei(OWNER, 5 * 10 ** 8)
        assert sale_token.token_price_in_wei() == 5 * 10 ** 8

    def test_price_setter_fixes_price(self, sale_token):
        sale_token.set_price_setter(OWNER, "oracle")
        sale_token.set_and_fix_token_price_in_wei("oracle", 3 * 10 ** 7)
        assert sale_token.token_price_in_wei() == 3 * 10 ** 7

    def test_stranger_rejected(self, sale_token):
        with pytest.raises(AuthorizationError):
            sale_token.set_and_fix_token_price_in_wei("mallory", 1)
        with pytest.raises(AuthorizationError):
            sale_token.unfix_token_price_in_wei("mallory")

    def test_unfix_returns_to_schedule(self, sale_token, host):
        sale_token.set_price_setter(OWNER, "oracle")
        sale_token.set_and_fix_token_price_in_wei(OWNER, 10 ** 9)
        host.advance(timedelta(days=4))
        sale_token.unfix_token_price_in_wei("oracle")
        assert sale_token.token_price_in_wei() == 5 * 10 ** 7

    def test_zero_price_rejected(self, sale_token):
        with pytest.raises(InvalidArgumentError):
            sale_token.set_and_fix_token_price_in_wei(OWNER, 0)

    def test_fixed_price_used_for_purchases(self, sale_token):
        sale_token.set_and_fix_token_price_in_wei(OWNER, 10 ** 8)
        quote = sale_token.by_tokens("alice", ETH)
        assert quote.granted == ETH // 10 ** 8


class TestDisown:
    """Tests for disown()."""

    def test_non_owner_rejected(self, public_token):
        with pytest.raises(AuthorizationError):
            public_token.disown("mallory")

    @pytest.mark.parametrize("state", ["PreSale", "Sale"])
    def test_requires_public_use(self, token, state):
        token.set_state(OWNER, state)
        with pytest.raises(WrongStateError):
            token.disown(OWNER)
        assert not token.disowned

    def test_disown_removes_all_access(self, public_token):
        public_token.set_price_setter(OWNER, "oracle")
        public_token.disown(OWNER)
        assert public_token.disowned
        with pytest.raises(AuthorizationError):
            public_token.set_state(OWNER, "Sale")
        with pytest.raises(AuthorizationError):
            public_token.set_bank(OWNER, "vault")
        with pytest.raises(AuthorizationError):
            public_token.set_and_fix_token_price_in_wei("oracle", 1)
        with pytest.raises(AuthorizationError):
            public_token.disown(OWNER)

    def test_ledger_keeps_working_after_disown(self, public_token):
        public_token.disown(OWNER)
        public_token.transfer(OWNER, "alice", 100)
        assert public_token.balance_of("alice") == 100


# =============================================================================
# LEDGER
# =============================================================================

class TestLedgerEntryPoints:
    """Tests for transfers and allowances through the program."""

    def test_transfer(self, token):
        assert token.transfer(OWNER, "alice", 1000) is True
        assert token.balance_of("alice") == 1000

    @pytest.mark.parametrize("to", [NULL_ADDRESS, "token"])
    def test_transfer_invalid_recipient(self, token, to):
        with pytest.raises(InvalidArgumentError):
            token.transfer(OWNER, to, 1)

    def test_transfer_overdraw(self, token):
        with pytest.raises(InsufficientBalanceError):
            token.transfer("alice", "bob", 1)

    def test_transfer_does_not_notify(self, token, host):
        recipient = RecordingRecipient(host, "receiver")
        token.transfer(OWNER, "receiver", 10)
        assert recipient.notifications == []

    def test_transfers_allowed_in_any_state(self, token):
        token.transfer(OWNER, "alice", 1)
        token.set_state(OWNER, "Sale")
        token.transfer(OWNER, "alice", 1)
        token.set_state(OWNER, "PublicUse")
        token.transfer(OWNER, "alice", 1)
        assert token.balance_of("alice") == 3

    def test_approve_zero_then_set(self, token):
        token.approve(OWNER, "alice", 1000)
        with pytest.raises(NonZeroApprovalError):
            token.approve(OWNER, "alice", 2000)
        assert token.allowance(OWNER, "alice") == 1000
        token.approve(OWNER, "alice", 0)
        token.approve(OWNER, "alice", 2000)
        assert token.allowance(OWNER, "alice") == 2000

    @pytest.mark.parametrize("spender", [NULL_ADDRESS, "token"])
    def test_approve_invalid_spender(self, token, spender):
        with pytest.raises(InvalidArgumentError):
            token.approve(OWNER, spender, 1)

    def test_increase_decrease(self, token):
        assert token.allowance(OWNER, "alice") == 0
        token.increase_approval(OWNER, "alice", 50)
        assert token.allowance(OWNER, "alice") == 50
        token.decrease_approval(OWNER, "alice", 50)
        assert token.allowance(OWNER, "alice") == 0
        token.increase_approval(OWNER, "alice", 10)
        token.decrease_approval(OWNER, "alice", 50)
        assert token.allowance(OWNER, "alice") == 0

    def test_transfer_from(self, token):
        token.approve(OWNER, "alice", 500)
        token.transfer_from("alice", OWNER, "bob", 200)
        assert token.balance_of("bob") == 200
        assert token.allowance(OWNER, "alice") == 300

    def test_transfer_from_over_allowance(self, token):
        token.approve(OWNER, "alice", 500)
        with pytest.raises(InsufficientAllowanceError):
            token.transfer_from("alice", OWNER, "bob", 501)

    @pytest.mark.parametrize("to", [NULL_ADDRESS, "token"])
    def test_transfer_from_invalid_recipient(self, token, to):
        token.approve(OWNER, "alice", 500)
        with pytest.raises(InvalidArgumentError):
            token.transfer_from("alice", OWNER, to, 1)


class TestTransferAndCall:
    """Tests for notifying transfers."""

    def test_transfers_and_notifies(self, token, host):
        recipient = RecordingRecipient(host, "receiver")
        token.transfer_and_call(OWNER, "receiver", 250, b"\x01\x02")
        assert token.balance_of("receiver") == 250
        assert recipient.notifications == [(OWNER, 250, b"\x01\x02")]

    def test_plain_account_rejected(self, token):
        before = token.balance_of(OWNER)
        with pytest.raises(IncompatibleRecipientError):
            token.transfer_and_call(OWNER, "alice", 250)
        assert token.balance_of(OWNER) == before

    def test_contract_without_hook_rejected(self, token, host):
        PlainContract(host, "plain")
        with pytest.raises(IncompatibleRecipientError):
            token.transfer_and_call(OWNER, "plain", 250)
        assert token.balance_of("plain") == 0

    def test_callback_failure_reverts_transfer(self, token, host):
        RecordingRecipient(host, "picky", reject=True)
        before = token.balance_of(OWNER)
        with pytest.raises(RuntimeError):
            token.transfer_and_call(OWNER, "picky", 250)
        assert token.balance_of(OWNER) == before
        assert token.balance_of("picky") == 0

    def test_transfer_all_and_call(self, token, host):
        recipient = RecordingRecipient(host, "receiver")
        token.transfer(OWNER, "alice", 777)
        token.transfer_all_and_call("alice", "receiver", b"")
        assert token.balance_of("alice") == 0
        assert token.balance_of("receiver") == 777
        assert recipient.notifications == [("alice", 777, b"")]


# =============================================================================
# SALE
# =============================================================================

class TestPurchases:
    """Tests for by_tokens() and the fallback purchase."""

    def test_one_eth_buys_the_cap(self, sale_token):
        sale_token.by_tokens("alice", ETH)
        assert sale_token.balance_of("alice") == CAP
        assert sale_token.balance_of(sale_token.address) == 3 * 10 ** 15 - CAP

    def test_two_eth_capped_with_refund(self, sale_token, host):
        sale_token.by_tokens("alice", 2 * ETH)
        assert sale_token.balance_of("alice") == CAP
        assert sale_token.pending_withdrawals("alice") == ETH
        assert host.native_balance(sale_token.address) == ETH

    def test_half_eth(self, sale_token, host):
        sale_token.by_tokens("alice", ETH // 2)
        assert sale_token.balance_of("alice") == 500 * WHOLE_TOKEN
        assert sale_token.pending_withdrawals("alice") == 0
        assert sale_token.native_balance() == 0

    def test_payouts_pushed(self, sale_token, host):
        before = native_snapshot(host, OWNER, BANK, "alice")
        sale_token.by_tokens("alice", ETH // 2)
        assert host.native_balance(OWNER) - before[OWNER] == ETH // 2 * 5 // 100
        assert host.native_balance(BANK) - before[BANK] == ETH // 2 * 95 // 100
        assert before["alice"] - host.native_balance("alice") == ETH // 2

    def test_buyer_at_cap_rejected(self, sale_token, host):
        sale_token.by_tokens("alice", ETH)
        before = host.native_balance("alice")
        with pytest.raises(CapReachedError):
            sale_token.by_tokens("alice", ETH)
        assert host.native_balance("alice") == before

    def test_value_below_price_rejected(self, sale_token):
        price = sale_token.token_price_in_wei()
        with pytest.raises(InsufficientPaymentError):
            sale_token.by_tokens("alice", price - 100)

    def test_dust_stays_with_program(self, sale_token):
        price = sale_token.token_price_in_wei()
        quote = sale_token.by_tokens("alice", 3 * price + 5)
        assert quote.granted == 3
        assert sale_token.pending_withdrawals("alice") == 0
        assert sale_token.native_balance() == 5

    @pytest.mark.parametrize("state", ["PreSale", "PublicUse"])
    def test_only_during_sale(self, token, buyers, state):
        token.set_state(OWNER, state)
        with pytest.raises(WrongStateError):
            token.by_tokens("alice", ETH)

    def test_buyer_without_funds(self, sale_token):
        with pytest.raises(InsufficientFundsError):
            sale_token.by_tokens("pauper", ETH)
        assert sale_token.balance_of("pauper") == 0

    def test_empty_inventory_rejected(self, host, buyers):
        """With the whole supply minted to the owner there is nothing to sell."""
        token = deploy_token(host, SaleConfig(owner_share_percent=100))
        token.set_state(OWNER, State.SALE)
        assert token.balance_of(token.address) == 0

        store = token.snapshot()
        before = host.native_balance("alice")
        with pytest.raises(SaleInventoryExhaustedError):
            token.by_tokens("alice", ETH // 2)
        assert token.store == store
        assert host.native_balance("alice") == before
        assert host.call_log[-1].result is CallResult.REJECTED

    def test_price_rises_daily(self, sale_token, host):
        assert sale_token.token_price_in_wei() == 10 ** 7
        host.advance(timedelta(days=1, seconds=100))
        assert sale_token.token_price_in_wei() == 2 * 10 ** 7
        host.advance(timedelta(days=30))
        assert sale_token.token_price_in_wei() == 12 * 10 ** 7

    def test_later_purchase_gets_fewer_tokens(self, sale_token, host):
        host.advance(timedelta(days=3))
        sale_token.by_tokens("alice", ETH)
        assert sale_token.balance_of("alice") == ETH // (4 * 10 ** 7)

    def test_quote_matches_purchase(self, sale_token):
        quote = sale_token.quote("alice", 2 * ETH)
        assert sale_token.by_tokens("alice", 2 * ETH) == quote

    def test_fallback_purchase(self, sale_token, host):
        host.send_value("alice", sale_token.address, ETH // 2)
        assert sale_token.balance_of("alice") == 500 * WHOLE_TOKEN
        assert host.call_log[-1].entry_point == "fallback"

    def test_fallback_outside_sale_reverts(self, token, buyers, host):
        with pytest.raises(WrongStateError):
            host.send_value("alice", token.address, ETH // 2)
        assert host.native_balance("alice") == 10 * ETH
        assert token.native_balance() == 0


class TestWithdraw:
    """Tests for pulling refunds."""

    def test_withdraw_refund(self, sale_token, host):
        before = native_snapshot(host, OWNER, BANK, "alice", sale_token.address)
        sale_token.by_tokens("alice", 2 * ETH)
        assert sale_token.withdraw("alice") == ETH
        assert before["alice"] - host.native_balance("alice") == ETH
        assert host.native_balance(OWNER) - before[OWNER] == ETH * 5 // 100
        assert host.native_balance(BANK) - before[BANK] == ETH * 95 // 100
        assert host.native_balance(sale_token.address) == before[sale_token.address]
        assert sale_token.pending_withdrawals("alice") == 0

    def test_nothing_to_withdraw(self, sale_token):
        sale_token.by_tokens("alice", ETH // 2)
        with pytest.raises(NothingToWithdrawError):
            sale_token.withdraw("alice")

    def test_second_withdraw_fails(self, sale_token):
        sale_token.by_tokens("alice", 2 * ETH)
        sale_token.withdraw("alice")
        with pytest.raises(NothingToWithdrawError):
            sale_token.withdraw("alice")

    def test_refunds_accumulate(self, sale_token, host):
        sale_token.by_tokens("alice", 2 * ETH)
        sale_token.by_tokens("bob", 3 * ETH)
        assert sale_token.pending_withdrawals("bob") == 2 * ETH
        assert sale_token.native_balance() == 3 * ETH
        sale_token.withdraw("bob")
        assert sale_token.native_balance() == ETH

    def test_withdraw_allowed_after_sale(self, sale_token):
        sale_token.by_tokens("alice", 2 * ETH)
        sale_token.set_state(OWNER, "PublicUse")
        assert sale_token.withdraw("alice") == ETH


# =============================================================================
# OWNER ACCESS WINDOW
# =============================================================================

class TestOwnerAccess:
    """Tests for the owner's administrative window."""

    def test_access_if_sale_never_entered(self, token, host):
        host.advance(timedelta(days=145))
        token.set_state(OWNER, "Sale")
        assert token.state is State.SALE

    def test_access_inside_window(self, token, host):
        token.set_state(OWNER, "Sale")
        host.advance(timedelta(days=140))
        token.set_state(OWNER, "PublicUse")

    def test_access_while_not_in_public_use(self, token, host):
        token.set_state(OWNER, "Sale")
        host.advance(timedelta(days=145))
        token.set_state(OWNER, "PublicUse")
        assert token.state is State.PUBLIC_USE

    def test_expired_in_public_use(self, token, host):
        token.set_state(OWNER, "Sale")
        token.set_state(OWNER, "PublicUse")
        host.advance(timedelta(days=145))
        with pytest.raises(AccessExpiredError):
            token.set_state(OWNER, "PublicUse")

    def test_expiry_blocks_every_admin_setter(self, token, host):
        token.set_price_setter(OWNER, "oracle")
        token.set_state(OWNER, "Sale")
        token.set_state(OWNER, "PublicUse")
        host.advance(timedelta(days=145))
        with pytest.raises(AccessExpiredError):
            token.set_bank(OWNER, "vault")
        with pytest.raises(AccessExpiredError):
            token.set_price_setter(OWNER, "other")
        with pytest.raises(AccessExpiredError):
            token.set_and_fix_token_price_in_wei("oracle", 1)
        with pytest.raises(AccessExpiredError):
            token.unfix_token_price_in_wei(OWNER)

    def test_window_boundary(self, token, host):
        token.set_state(OWNER, "Sale")
        token.set_state(OWNER, "PublicUse")
        host.advance(timedelta(days=144))
        token.set_bank(OWNER, "vault")
        host.advance(timedelta(seconds=1))
        with pytest.raises(AccessExpiredError):
            token.set_bank(OWNER, "vault2")
        assert token.bank == "vault"

    def test_disown_still_possible_after_expiry(self, token, host):
        token.set_state(OWNER, "Sale")
        token.set_state(OWNER, "PublicUse")
        host.advance(timedelta(days=200))
        token.disown(OWNER)
        assert token.disowned


# =============================================================================
# FULL LIFECYCLE
# =============================================================================

class TestFullLifecycle:
    """A complete sale from deployment to renunciation."""

    def test_end_to_end(self, host):
        host.fund("alice", 5 * ETH)
        host.fund("bob", 5 * ETH)

        token = SaleToken(host, owner=OWNER)
        token.initialize(OWNER)
        token.set_bank(OWNER, BANK)
        token.set_state(OWNER, "Sale")

        token.by_tokens("alice", 2 * ETH)          # day 1: capped, 1 ETH refund
        host.advance(timedelta(days=5))
        token.by_tokens("bob", 3 * 10 ** 17)       # day 6: 6e7 per unit
        token.withdraw("alice")

        token.set_state(OWNER, "PublicUse")
        token.transfer("alice", "bob", 100 * WHOLE_TOKEN)
        token.disown(OWNER)

        assert token.balance_of("alice") == CAP - 100 * WHOLE_TOKEN
        assert token.balance_of("bob") == 3 * 10 ** 17 // (6 * 10 ** 7) + 100 * WHOLE_TOKEN
        assert token.verify_supply()['valid']
        assert host.total_native_supply() == 10 * ETH
        assert token.native_balance() == 0

        applied = [r for r in host.call_log if r.result is CallResult.APPLIED and r.depth == 0]
        assert [r.entry_point for r in applied] == [
            "initialize", "set_bank", "set_state", "by_tokens", "by_tokens",
            "withdraw", "set_state", "transfer", "disown",
        ]
        assert host.rejected_calls() == []
