"""
lifecycle.py - Sale lifecycle state machine

Three phases: PreSale (initial) -> Sale -> PublicUse. The owner may move
the program into any phase at any time, as long as the owner's access has
not expired. The first entry into Sale starts the price clock and the
owner's access window; that instant is recorded once and never changes.
"""

from __future__ import annotations
from datetime import timedelta
from typing import Callable

from .core import (
    SaleConfig, State, TokenStore,
    AccessExpiredError, WrongStateError,
    SECONDS_PER_DAY,
)


# Returns the current time in whole UNIX seconds.
Clock = Callable[[], int]


def owner_access_expired(
    now: int,
    first_entrance: int,
    prior_state: State,
    window: timedelta,
) -> bool:
    """
    Decide whether the owner has lost administrative reach.

    Access is lost only when all three hold:
    - the sale has been entered at least once (first_entrance != 0)
    - more than window has passed since that first entrance
    - the program is already in PublicUse

    Before the sale starts, during the grace window, and in any phase other
    than PublicUse, the owner keeps full access.
    """
    if first_entrance == 0:
        return False
    if prior_state is not State.PUBLIC_USE:
        return False
    return now - first_entrance > int(window.total_seconds())


class LifecycleStateMachine:
    """
    Phase transitions and the time anchors derived from them.

    Authorization is not checked here; SaleToken consults AccessControl
    before calling transition().
    """

    def __init__(self, store: TokenStore, clock: Clock, config: SaleConfig):
        self.store = store
        self.clock = clock
        self.config = config

    @property
    def state(self) -> State:
        return self.store.state

    @property
    def first_entrance(self) -> int:
        """UNIX seconds of the first transition into Sale (0 = never)."""
        return self.store.first_entrance

    def sale_started(self) -> bool:
        return self.store.first_entrance != 0

    def days_since_first_entrance(self) -> int:
        """Whole days elapsed since the sale first opened (0 if it never did)."""
        if not self.sale_started():
            return 0
        return (self.clock() - self.store.first_entrance) // SECONDS_PER_DAY

    def access_expired(self) -> bool:
        return owner_access_expired(
            self.clock(),
            self.store.first_entrance,
            self.store.state,
            self.config.access_window,
        )

    def require_access(self) -> None:
        """
        Raises:
            AccessExpiredError: If the owner's access window has lapsed in PublicUse
        """
        if self.access_expired():
            raise AccessExpiredError(
                f"owner access expired {self.config.access_window} after the sale opened"
            )

    def require_state(self, expected: State) -> None:
        """
        Raises:
            WrongStateError: If the program is not in the expected phase
        """
        if self.store.state is not expected:
            raise WrongStateError(
                f"operation requires state {expected}, current state is {self.store.state}"
            )

    def transition(self, target: State) -> State:
        """
        Move to target and return the previous state.

        The first transition into Sale captures the current time as the
        first entrance. Re-entering any phase, including the current one,
        is allowed.
        """
        previous = self.store.state
        if target is State.SALE and self.store.first_entrance == 0:
            self.store.first_entrance = self.clock()
        self.store.state = target
        return previous
