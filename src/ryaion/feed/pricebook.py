"""Latest prices plus a rolling window of recent ticks per instrument."""

from collections import deque

from ryaion.domain.models import PriceTick, require_price


class PriceBook:
    """Holds the most recent price for each instrument and its recent history.

    History is a bounded buffer per instrument, oldest first, enough to draw
    an intraday sparkline without going back to the feed.
    """

    def __init__(self, history_length: int = 100) -> None:
        self._history_length = history_length
        self._latest: dict[str, float] = {}
        self._history: dict[str, deque[PriceTick]] = {}

    def apply(self, tick: PriceTick) -> None:
        require_price(tick.price)
        self._latest[tick.instrument_id] = tick.price
        buf = self._history.get(tick.instrument_id)
        if buf is None:
            buf = self._history[tick.instrument_id] = deque(maxlen=self._history_length)
        buf.append(tick)

    def latest(self, instrument_id: str) -> float | None:
        return self._latest.get(instrument_id)

    def latest_prices(self) -> dict[str, float]:
        return dict(self._latest)

    def history(self, instrument_id: str, limit: int | None = None) -> list[PriceTick]:
        """Recent ticks for an instrument, oldest first."""
        items = list(self._history.get(instrument_id, ()))
        if limit is not None and len(items) > limit:
            return items[-limit:]
        return items

    def change_pct(self, instrument_id: str) -> float:
        """Percent move from the oldest tick still in the window to the latest."""
        buf = self._history.get(instrument_id)
        if not buf:
            return 0.0
        first = buf[0].price
        return (buf[-1].price - first) / first * 100
