"""
ledger.py - Balance and allowance bookkeeping for a single fungible token

BalanceLedger mutates the balances and allowances held in a TokenStore.
It knows nothing about lifecycle phases, prices or authorization; the
SaleToken entry points decide when a ledger operation is legal.

Key responsibilities:
    - Debit before credit, validated before either is written
    - Zero-then-set approval discipline (anti front-running race)
    - Notify-or-fail transfers: the ledger is updated before the
      recipient's callback runs, and an incompatible recipient aborts
      the whole call
    - Conservation checks: the sum of all balances equals total supply
"""

from __future__ import annotations
from typing import Any, Callable, Dict, Optional

from .core import (
    TokenStore, TokenRecipient,
    InsufficientBalanceError, InsufficientAllowanceError,
    IncompatibleRecipientError, NonZeroApprovalError,
    require_valid_recipient, require_amount,
)


# Resolves an address to the contract deployed there (None for plain accounts).
CodeLookup = Callable[[str], Optional[Any]]


class BalanceLedger:
    """
    Token balances and allowances over a shared TokenStore.

    Reads never fail and never register accounts. Writes validate every
    precondition before touching the store, so a raised error leaves the
    store unchanged even without the host's rollback.
    """

    def __init__(self, store: TokenStore, program_address: str, code_at: CodeLookup):
        self.store = store
        self.program_address = program_address
        self._code_at = code_at

    # ========================================================================
    # READS
    # ========================================================================

    def balance_of(self, address: str) -> int:
        return self.store.peek(address).balance

    def allowance(self, owner: str, spender: str) -> int:
        return self.store.peek(owner).allowances.get(spender, 0)

    @property
    def total_supply(self) -> int:
        return self.store.total_supply

    def holders(self) -> Dict[str, int]:
        """Return every address with a nonzero balance."""
        return {
            address: record.balance
            for address, record in sorted(self.store.accounts.items())
            if record.balance
        }

    def circulating_sum(self) -> int:
        """Sum of all balances, accumulated in sorted address order."""
        return sum(
            self.store.accounts[address].balance
            for address in sorted(self.store.accounts)
        )

    def verify_supply(self) -> Dict[str, Any]:
        """
        Verify that the sum of all balances equals the total supply.

        Returns:
            Dict with keys:
            - 'valid': bool - True if the conservation law holds
            - 'supply': int - recorded total supply
            - 'actual': int - sum of all balances
            - 'difference': int - actual minus supply

        Example:
            result = ledger.verify_supply()
            assert result['valid'], f"Conservation violated: {result}"
        """
        actual = self.circulating_sum()
        supply = self.store.total_supply
        return {
            'valid': actual == supply,
            'supply': supply,
            'actual': actual,
            'difference': actual - supply,
        }

    # ========================================================================
    # ISSUANCE
    # ========================================================================

    def mint(self, to: str, amount: int) -> None:
        """Create new units; only the one-time initialization calls this."""
        require_amount(amount)
        self.store.account(to).balance += amount
        self.store.total_supply += amount

    # ========================================================================
    # TRANSFERS
    # ========================================================================

    def move(self, source: str, dest: str, amount: int,
             error: type = InsufficientBalanceError) -> None:
        """Debit source and credit dest after checking the source balance."""
        require_amount(amount)
        available = self.balance_of(source)
        if available < amount:
            raise error(f"{source} holds {available}, cannot move {amount}")
        if amount == 0:
            return
        self.store.account(source).balance = available - amount
        self.store.account(dest).balance += amount

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """
        Move amount from sender to to.

        Never invokes a notification callback, even if the recipient
        supports one.

        Raises:
            InvalidArgumentError: If to is the null address or the program
            InsufficientBalanceError: If sender holds less than amount
        """
        require_valid_recipient(to, self.program_address)
        self.move(sender, to, amount)
        return True

    def transfer_from(self, spender: str, source: str, to: str, amount: int) -> bool:
        """
        Move amount from source to to on the strength of spender's allowance.

        Raises:
            InvalidArgumentError: If to is the null address or the program
            InsufficientAllowanceError: If the allowance is below amount
            InsufficientBalanceError: If source holds less than amount
        """
        require_valid_recipient(to, self.program_address)
        require_amount(amount)
        allowed = self.allowance(source, spender)
        if allowed < amount:
            raise InsufficientAllowanceError(
                f"{spender} may move {allowed} from {source}, requested {amount}"
            )
        self.move(source, to, amount)
        if amount:
            self.store.account(source).allowances[spender] = allowed - amount
        return True

    def transfer_and_call(self, sender: str, to: str, amount: int, data: bytes = b"") -> bool:
        """
        Transfer and then notify the recipient via on_token_transfer.

        The recipient must declare the TokenRecipient capability. Balances
        are updated before the callback fires, so a re-entrant call from
        the recipient already sees the new balances.

        Raises:
            IncompatibleRecipientError: If the recipient has no notification hook
        """
        require_valid_recipient(to, self.program_address)
        recipient = self._code_at(to)
        if not isinstance(recipient, TokenRecipient):
            raise IncompatibleRecipientError(
                f"{to} does not implement on_token_transfer"
            )
        self.move(sender, to, amount)
        recipient.on_token_transfer(sender, amount, data)
        return True

    def transfer_all_and_call(self, sender: str, to: str, data: bytes = b"") -> bool:
        """Transfer the sender's whole balance through transfer_and_call."""
        return self.transfer_and_call(sender, to, self.balance_of(sender), data)

    # ========================================================================
    # ALLOWANCES
    # ========================================================================

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """
        Set spender's allowance over owner's balance.

        A nonzero allowance can only be replaced after resetting it to zero:
        approve(spender, 0) followed by approve(spender, new_amount).

        Raises:
            InvalidArgumentError: If spender is the null address or the program
            NonZeroApprovalError: If both the current and the new allowance are nonzero
        """
        require_valid_recipient(spender, self.program_address, role="spender")
        require_amount(amount)
        current = self.allowance(owner, spender)
        if amount and current:
            raise NonZeroApprovalError(
                f"allowance of {spender} over {owner} is {current}; reset it to 0 first"
            )
        self.store.account(owner).allowances[spender] = amount
        return True

    def increase_approval(self, owner: str, spender: str, delta: int) -> bool:
        require_amount(delta, "delta")
        current = self.allowance(owner, spender)
        self.store.account(owner).allowances[spender] = current + delta
        return True

    def decrease_approval(self, owner: str, spender: str, delta: int) -> bool:
        """Lower an allowance; decreasing past zero leaves it at zero."""
        require_amount(delta, "delta")
        current = self.allowance(owner, spender)
        self.store.account(owner).allowances[spender] = max(current - delta, 0)
        return True

    def grant(self, owner: str, spender: str, amount: int) -> None:
        """Set an allowance without the approve() race guard (initialization only)."""
        require_amount(amount)
        self.store.account(owner).allowances[spender] = amount
