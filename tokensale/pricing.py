"""
pricing.py - Token price in wei per base unit

Provides:
- calc_token_price: pure step price derived from the sale's first entrance
- price_schedule: vectorized projection of the step price (numpy)
- PricingEngine: the current price, honouring a fixed-price override

Price model:
    day n of the sale (n = 1 on the opening day) costs
    min(n, max_price_days) * base_daily_increment wei per base unit.
    The price only ever rises and plateaus once the cap day is reached.
"""

from __future__ import annotations
from typing import Optional, Union

import numpy as np

from .core import (
    SaleConfig, TokenStore, InvalidArgumentError,
    SECONDS_PER_DAY, require_amount,
)
from .lifecycle import Clock


# Type alias for scalar or array inputs
Numeric = Union[int, np.ndarray]


def calc_token_price(now: int, first_entrance: int, config: SaleConfig) -> int:
    """
    Time-based price in wei for one base unit.

    Returns 0 if the sale has never been entered. The opening day already
    counts as day one.
    """
    if first_entrance == 0:
        return 0
    days = (now - first_entrance) // SECONDS_PER_DAY + 1
    return min(days, config.max_price_days) * config.base_daily_increment


def price_schedule(elapsed_days: Numeric, config: SaleConfig) -> np.ndarray:
    """
    Step price for an array of whole days elapsed since the sale opened.

    Same formula as calc_token_price, evaluated element-wise:
        price_schedule(np.arange(15), config)
        -> [1e7, 2e7, ..., 12e7, 12e7, 12e7, 12e7]
    """
    days = np.asarray(elapsed_days, dtype=np.int64)
    if np.any(days < 0):
        raise ValueError("elapsed_days cannot be negative")
    steps = np.minimum(days + 1, config.max_price_days)
    return steps * np.int64(config.base_daily_increment)


def days_until_price_cap(config: SaleConfig) -> int:
    """Whole days after opening at which the price reaches its ceiling."""
    return config.max_price_days - 1


class PricingEngine:
    """
    Current purchase price with an optional fixed override.

    The override is set by the owner or the price setter; authorization is
    checked by SaleToken before set_fixed_price / clear_fixed_price run.
    """

    def __init__(self, store: TokenStore, clock: Clock, config: SaleConfig):
        self.store = store
        self.clock = clock
        self.config = config

    @property
    def fixed_price(self) -> Optional[int]:
        return self.store.fixed_price

    def is_fixed(self) -> bool:
        return self.store.fixed_price is not None

    def token_price_in_wei(self) -> int:
        if self.store.fixed_price is not None:
            return self.store.fixed_price
        return calc_token_price(self.clock(), self.store.first_entrance, self.config)

    def set_fixed_price(self, price: int) -> None:
        """
        Raises:
            InvalidArgumentError: If price is not a positive int
        """
        require_amount(price, "price")
        if price == 0:
            raise InvalidArgumentError("fixed price must be positive")
        self.store.fixed_price = price

    def clear_fixed_price(self) -> None:
        """Return to the time-based price. Clearing twice is a no-op."""
        self.store.fixed_price = None

    def schedule(self, horizon_days: int) -> np.ndarray:
        """Time-based prices for days 0..horizon_days-1 after the sale opens."""
        return price_schedule(np.arange(horizon_days), self.config)
