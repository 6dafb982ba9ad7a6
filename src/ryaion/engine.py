"""Portfolio engine — the single state store behind the dashboard.

It owns the two mutable inputs (the transaction log and the alert set) and
the latest prices. Holdings, P&L and valuation are never stored; every query
re-derives them from the current log with the pure functions in
``ryaion.portfolio``.
"""

import logging
import threading
from collections.abc import Iterable, Sequence
from datetime import datetime

from ryaion.alerts.monitor import AlertMonitor
from ryaion.config import OversellPolicy
from ryaion.domain.errors import InvalidInputError, OversellError
from ryaion.domain.models import (
    AlertDirection,
    AlertNotification,
    Holding,
    LedgerSummary,
    PriceAlert,
    PriceTick,
    Transaction,
    TransactionKind,
    Valuation,
    new_id,
    require_price,
    require_quantity,
    utcnow,
)
from ryaion.domain.ports import NotificationSink
from ryaion.feed.pricebook import PriceBook
from ryaion.instruments import InstrumentRegistry
from ryaion.portfolio.ledger import find_new_oversells, reduce_ledger
from ryaion.portfolio.valuation import compute_valuation

logger = logging.getLogger(__name__)


class PortfolioEngine:
    """Transactions + prices + alerts, with everything else derived on demand."""

    def __init__(
        self,
        registry: InstrumentRegistry | None = None,
        *,
        transactions: Iterable[Transaction] = (),
        alerts: Iterable[PriceAlert] = (),
        sinks: Iterable[NotificationSink] = (),
        oversell_policy: OversellPolicy = OversellPolicy.CLAMP,
        history_length: int = 100,
    ) -> None:
        self.registry = registry
        self.oversell_policy = oversell_policy
        self.prices = PriceBook(history_length=history_length)
        self.monitor = AlertMonitor(alerts, sinks)

        self._tx_lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._transactions: dict[str, Transaction] = {}
        self._next_sequence = 0
        for tx in transactions:
            self._transactions[tx.id] = tx
            self._next_sequence = max(self._next_sequence, tx.sequence + 1)

    # ── Transactions ───────────────────────────────────────────

    @property
    def transactions(self) -> list[Transaction]:
        """The log in insertion order."""
        with self._tx_lock:
            return list(self._transactions.values())

    def add_transaction(
        self,
        instrument_id: str,
        kind: TransactionKind,
        quantity: int,
        price: float,
        *,
        timestamp: datetime | None = None,
        transaction_id: str | None = None,
    ) -> Transaction:
        """Validate and append a new transaction."""
        quantity = require_quantity(quantity)
        price = require_price(price)

        with self._tx_lock:
            try:
                tx = Transaction(
                    id=transaction_id or new_id(),
                    instrument_id=instrument_id,
                    kind=TransactionKind(kind),
                    quantity=quantity,
                    price=price,
                    timestamp=timestamp or utcnow(),
                    sequence=self._next_sequence,
                )
            except ValueError as e:
                raise InvalidInputError(f"Invalid transaction: {e}") from e
            return self.insert_transaction(tx)

    def insert_transaction(self, tx: Transaction) -> Transaction:
        """Put a complete record into the log.

        Re-inserting an identical record is a no-op; reusing an id for
        different data is an input error.
        """
        self._check_instrument(tx.instrument_id)

        with self._tx_lock:
            existing = self._transactions.get(tx.id)
            if existing is not None:
                if existing == tx:
                    return existing
                raise InvalidInputError(f"Transaction {tx.id} already exists with different data")

            if tx.kind == TransactionKind.SELL and self.oversell_policy == OversellPolicy.REJECT:
                self._reject_oversell(tx)

            self._transactions[tx.id] = tx
            self._next_sequence = max(self._next_sequence, tx.sequence + 1)

        logger.info(
            "Transaction %s: %s %d %s @ %.2f",
            tx.id,
            tx.kind.value,
            tx.quantity,
            tx.instrument_id,
            tx.price,
        )
        return tx

    def remove_transaction(self, transaction_id: str) -> bool:
        """Delete a transaction. Unknown ids are ignored."""
        with self._tx_lock:
            removed = self._transactions.pop(transaction_id, None)
        if removed is None:
            return False
        logger.info("Transaction %s removed", transaction_id)
        return True

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        with self._tx_lock:
            return self._transactions.get(transaction_id)

    def restore_transaction(self, tx: Transaction, position: int | None = None) -> None:
        """Put back a record that was removed, at its old place in the log.

        The over-sell policy is not re-applied: the record was already accepted once.
        """
        with self._tx_lock:
            if tx.id in self._transactions:
                return
            items = list(self._transactions.items())
            items.insert(len(items) if position is None else position, (tx.id, tx))
            self._transactions = dict(items)
            self._next_sequence = max(self._next_sequence, tx.sequence + 1)
        logger.info("Transaction %s restored", tx.id)

    def _check_instrument(self, instrument_id: str) -> None:
        if self.registry is not None and instrument_id not in self.registry:
            raise InvalidInputError(f"Unknown instrument: {instrument_id}")

    def _reject_oversell(self, tx: Transaction) -> None:
        before = reduce_ledger(self._transactions.values())
        after = reduce_ledger([*self._transactions.values(), tx])
        new = find_new_oversells(before, after)
        if new:
            first = new[0]
            raise OversellError(first.instrument_id, first.requested, first.filled)

    # ── Derived state ──────────────────────────────────────────

    def ledger(self) -> LedgerSummary:
        return reduce_ledger(self.transactions)

    def holdings(self) -> dict[str, Holding]:
        return self.ledger().holdings

    def realized_pl(self) -> float:
        return self.ledger().realized_pl

    def valuation(self) -> Valuation:
        return compute_valuation(self.holdings(), self.prices.latest_prices(), self.registry)

    # ── Prices ─────────────────────────────────────────────────

    def apply_price_tick(
        self, instrument_id: str, price: float, timestamp: datetime | None = None
    ) -> list[AlertNotification]:
        """One price for one instrument, followed by an alert sweep for it."""
        price = require_price(price)
        tick = PriceTick(instrument_id=instrument_id, price=price, timestamp=timestamp or utcnow())
        return self.process_tick([tick])

    def process_tick(self, ticks: Sequence[PriceTick]) -> list[AlertNotification]:
        """Run one feed cycle as a unit: apply prices, sweep alerts, emit.

        Ticks never interleave; a second caller waits for the first to finish.
        """
        if not ticks:
            return []
        for tick in ticks:
            require_price(tick.price)

        with self._tick_lock:
            for tick in ticks:
                self.prices.apply(tick)
            batch = {tick.instrument_id: tick.price for tick in ticks}
            return self.monitor.evaluate(batch, max(t.timestamp for t in ticks))

    def update_prices(self, ticks: Sequence[PriceTick]) -> None:
        """Record prices for valuation only. Alerts are not swept."""
        for tick in ticks:
            require_price(tick.price)
        with self._tick_lock:
            for tick in ticks:
                self.prices.apply(tick)

    # ── Alerts ─────────────────────────────────────────────────

    @property
    def alerts(self) -> list[PriceAlert]:
        return self.monitor.alerts

    def create_alert(
        self,
        instrument_id: str,
        target_price: float,
        direction: AlertDirection,
        *,
        alert_id: str | None = None,
        created_at: datetime | None = None,
    ) -> PriceAlert:
        self._check_instrument(instrument_id)
        return self.monitor.create_alert(
            instrument_id, target_price, direction, alert_id=alert_id, created_at=created_at
        )

    def toggle_alert(self, alert_id: str) -> PriceAlert | None:
        return self.monitor.toggle_alert(alert_id)

    def remove_alert(self, alert_id: str) -> bool:
        return self.monitor.remove_alert(alert_id)

    def restore_alert(self, alert: PriceAlert, position: int | None = None) -> None:
        self.monitor.restore_alert(alert, position)
