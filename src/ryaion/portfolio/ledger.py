"""Ledger reducer — folds the transaction log into holdings and realized P&L.

Everything here is a pure function of the transactions passed in. Holdings are
never stored or patched incrementally; callers re-run the fold over the full,
current log whenever it changes.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from ryaion.domain.models import (
    Holding,
    LedgerSummary,
    Oversell,
    Transaction,
    TransactionKind,
)


@dataclass
class _Position:
    quantity: int = 0
    avg_cost: float = 0.0


def ordered(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Ledger order: timestamp, then insertion sequence. Stable for anything left tied."""
    return sorted(transactions, key=lambda t: (t.timestamp, t.sequence))


def reduce_ledger(transactions: Iterable[Transaction]) -> LedgerSummary:
    """Fold ``transactions`` into holdings with moving-average cost.

    A SELL larger than the held quantity is clamped to what is held and
    reported in ``oversells``. Closed positions (quantity 0) are left out of
    ``holdings`` but keep their share of realized P&L.
    """
    positions: dict[str, _Position] = {}
    realized: dict[str, float] = {}
    oversells: list[Oversell] = []
    realized_pl = 0.0

    for t in ordered(transactions):
        pos = positions.setdefault(t.instrument_id, _Position())

        if t.kind == TransactionKind.BUY:
            new_qty = pos.quantity + t.quantity
            if new_qty > 0:
                pos.avg_cost = (pos.quantity * pos.avg_cost + t.quantity * t.price) / new_qty
            else:
                pos.avg_cost = 0.0
            pos.quantity = new_qty
            continue

        sell_qty = min(t.quantity, pos.quantity)
        if sell_qty < t.quantity:
            oversells.append(
                Oversell(
                    transaction_id=t.id,
                    instrument_id=t.instrument_id,
                    requested=t.quantity,
                    filled=sell_qty,
                )
            )
        pnl = (t.price - pos.avg_cost) * sell_qty
        realized_pl += pnl
        realized[t.instrument_id] = realized.get(t.instrument_id, 0.0) + pnl
        pos.quantity -= sell_qty
        if pos.quantity == 0:
            pos.avg_cost = 0.0

    holdings = {
        instrument_id: Holding(
            instrument_id=instrument_id, quantity=pos.quantity, avg_cost=pos.avg_cost
        )
        for instrument_id, pos in positions.items()
        if pos.quantity > 0
    }
    return LedgerSummary(
        holdings=holdings,
        realized_pl=realized_pl,
        realized_by_instrument=realized,
        oversells=oversells,
    )


def compute_holdings(transactions: Iterable[Transaction]) -> dict[str, Holding]:
    return reduce_ledger(transactions).holdings


def compute_realized_pl(transactions: Iterable[Transaction]) -> float:
    return reduce_ledger(transactions).realized_pl


def find_new_oversells(before: LedgerSummary, after: LedgerSummary) -> list[Oversell]:
    """Oversells present in ``after`` that ``before`` did not already have."""
    known = {(o.transaction_id, o.filled) for o in before.oversells}
    return [o for o in after.oversells if (o.transaction_id, o.filled) not in known]
