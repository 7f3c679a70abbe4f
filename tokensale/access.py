"""
access.py - Owner, bank and price-setter authorization

Three distinguished addresses:
- owner: the administrator; starts as the deployer
- bank: receives the bulk of sale proceeds; starts as the deployer
- price_setter: optional delegate allowed to fix and unfix the price;
  starts as the null address

disown() is a one-way door: once taken, every administrative entry point
fails for good, including disown itself.
"""

from __future__ import annotations

from .core import (
    State, TokenStore, NULL_ADDRESS,
    AuthorizationError, InvalidArgumentError,
    require_valid_recipient,
)
from .lifecycle import LifecycleStateMachine


class AccessControl:
    """Authorization checks and the administrative setters they guard."""

    def __init__(self, store: TokenStore, program_address: str, lifecycle: LifecycleStateMachine):
        self.store = store
        self.program_address = program_address
        self.lifecycle = lifecycle

    @property
    def bank(self) -> str:
        return self.store.bank

    @property
    def price_setter(self) -> str:
        return self.store.price_setter

    @property
    def disowned(self) -> bool:
        return self.store.disowned

    def is_owner(self, caller: str) -> bool:
        return not self.store.disowned and caller == self.store.owner

    def is_price_authority(self, caller: str) -> bool:
        if self.store.disowned:
            return False
        if caller == self.store.owner:
            return True
        return self.store.price_setter != NULL_ADDRESS and caller == self.store.price_setter

    def require_owner(self, caller: str) -> None:
        """
        Raises:
            AuthorizationError: If caller is not the owner or the program is disowned
        """
        if self.store.disowned:
            raise AuthorizationError("program has been disowned")
        if caller != self.store.owner:
            raise AuthorizationError(f"{caller} is not the owner")

    def require_price_authority(self, caller: str) -> None:
        """
        Raises:
            AuthorizationError: If caller is neither owner nor price setter
        """
        if self.store.disowned:
            raise AuthorizationError("program has been disowned")
        if not self.is_price_authority(caller):
            raise AuthorizationError(f"{caller} may not set the token price")

    def set_bank(self, new_bank: str) -> None:
        """
        Raises:
            InvalidArgumentError: If new_bank is null or the program itself
        """
        require_valid_recipient(new_bank, self.program_address, role="bank")
        self.store.bank = new_bank

    def set_price_setter(self, new_price_setter: str) -> None:
        """Delegate price authority; the null address revokes the delegate."""
        if new_price_setter == self.program_address:
            raise InvalidArgumentError("price setter cannot be the program address")
        self.store.price_setter = new_price_setter or NULL_ADDRESS

    def disown(self) -> None:
        """
        Give up ownership for good. Only legal once PublicUse is reached.

        Raises:
            WrongStateError: If the program is not in PublicUse
        """
        self.lifecycle.require_state(State.PUBLIC_USE)
        self.store.disowned = True
