"""Synthetic random-walk price source for demos and local runs."""

import random
from collections.abc import Mapping
from datetime import datetime

from ryaion.domain.models import PriceTick

# Rough INR levels for the default universe; only the starting point matters.
DEFAULT_REFERENCE_PRICES = {
    "reliance": 2950.0,
    "tcs": 3900.0,
    "infy": 1450.0,
    "hdfcbank": 1530.0,
    "icicibank": 1100.0,
    "sbin": 820.0,
    "hindunilvr": 2400.0,
    "itc": 430.0,
    "bhartiartl": 1350.0,
    "tatamotors": 960.0,
    "zomato": 190.0,
}


class RandomWalkSource:
    """Moves every instrument by a uniform random percentage each cycle."""

    def __init__(
        self,
        reference_prices: Mapping[str, float] = DEFAULT_REFERENCE_PRICES,
        *,
        max_move_pct: float = 0.2,
        seed: int | None = None,
    ) -> None:
        self._prices = dict(reference_prices)
        self._max_move_pct = max_move_pct
        self._rng = random.Random(seed)

    @property
    def prices(self) -> dict[str, float]:
        return dict(self._prices)

    def next_batch(self, timestamp: datetime) -> list[PriceTick]:
        ticks = []
        for instrument_id, price in self._prices.items():
            move = self._rng.uniform(-self._max_move_pct, self._max_move_pct)
            new_price = price * (1 + move / 100)
            self._prices[instrument_id] = new_price
            ticks.append(PriceTick(instrument_id=instrument_id, price=new_price, timestamp=timestamp))
        return ticks
