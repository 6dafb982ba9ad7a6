"""Portfolio valuator — marks holdings to the latest prices."""

import logging
from collections.abc import Mapping

from ryaion.domain.models import (
    AllocationSlice,
    Holding,
    Valuation,
    ValuationRow,
    ValuationTotals,
)
from ryaion.instruments import UNKNOWN_SECTOR, InstrumentRegistry

logger = logging.getLogger(__name__)


def _pct(part: float, whole: float) -> float:
    return part / whole * 100 if whole > 0 else 0.0


def _allocation(values: Mapping[str, float], total: float) -> list[AllocationSlice]:
    if total <= 0:
        return []
    return [
        AllocationSlice(key=key, market_value=value, share=value / total)
        for key, value in values.items()
    ]


def compute_valuation(
    holdings: Mapping[str, Holding],
    latest_prices: Mapping[str, float],
    registry: InstrumentRegistry | None = None,
) -> Valuation:
    """Value every open holding at its latest price.

    A holding with no price in ``latest_prices`` is valued at its average
    cost and flagged ``is_stale`` so "flat" and "unknown" stay distinguishable.
    """
    rows: list[ValuationRow] = []
    by_instrument: dict[str, float] = {}
    by_sector: dict[str, float] = {}

    for instrument_id, holding in holdings.items():
        if holding.quantity <= 0:
            continue

        price = latest_prices.get(instrument_id)
        is_stale = price is None
        live_price = holding.avg_cost if price is None else price
        if is_stale:
            logger.debug("No live price for %s, valuing at cost", instrument_id)

        invested = holding.quantity * holding.avg_cost
        market_value = holding.quantity * live_price
        unrealized = market_value - invested
        sector = registry.sector_of(instrument_id) if registry else UNKNOWN_SECTOR

        rows.append(
            ValuationRow(
                instrument_id=instrument_id,
                symbol=registry.symbol_of(instrument_id) if registry else instrument_id,
                sector=sector,
                quantity=holding.quantity,
                avg_cost=holding.avg_cost,
                live_price=live_price,
                market_value=market_value,
                invested_value=invested,
                unrealized_pl=unrealized,
                pct_change=_pct(unrealized, invested),
                is_stale=is_stale,
            )
        )
        by_instrument[instrument_id] = market_value
        by_sector[sector] = by_sector.get(sector, 0.0) + market_value

    invested_total = sum(r.invested_value for r in rows)
    current_total = sum(r.market_value for r in rows)
    unrealized_total = current_total - invested_total

    return Valuation(
        rows=rows,
        totals=ValuationTotals(
            invested_value=invested_total,
            current_value=current_total,
            unrealized_pl=unrealized_total,
            pct_change=_pct(unrealized_total, invested_total),
        ),
        allocation=_allocation(by_instrument, current_total),
        sector_allocation=_allocation(by_sector, current_total),
    )
