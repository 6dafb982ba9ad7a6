"""Vault — composition root: storage, engine, price feed and notification sinks."""

import asyncio
import logging
from datetime import datetime
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from ryaion.alerts.sinks import LoggingNotificationSink, RecentNotifications
from ryaion.config import Settings, get_settings
from ryaion.db.models import init_db
from ryaion.db.repository import Repository
from ryaion.domain.errors import StorageError
from ryaion.domain.models import (
    AlertDirection,
    AlertNotification,
    PriceAlert,
    Transaction,
    TransactionKind,
    utcnow,
)
from ryaion.domain.ports import NotificationSink, PriceSource
from ryaion.engine import PortfolioEngine
from ryaion.feed.generator import RandomWalkSource
from ryaion.feed.scheduler import PriceFeedScheduler
from ryaion.instruments import InstrumentRegistry

logger = logging.getLogger(__name__)


class Vault:
    """Wires the engine to SQLite and the price feed, and saves on every change.

    Use as ``async with Vault(settings) as vault: ...`` or call
    ``initialize()`` / ``shutdown()`` yourself.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        registry: InstrumentRegistry | None = None,
        source: PriceSource | None = None,
        sinks: list[NotificationSink] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.registry = registry or InstrumentRegistry()
        self.recent = RecentNotifications(maxlen=self.settings.recent_notifications)
        self._source = source
        self._sinks = sinks or []
        self._engine: PortfolioEngine | None = None
        self._repo: Repository | None = None
        self._feed: PriceFeedScheduler | None = None
        self._save_lock = asyncio.Lock()
        self._running = False

    async def __aenter__(self) -> "Vault":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    @property
    def engine(self) -> PortfolioEngine:
        if self._engine is None:
            raise RuntimeError("Vault is not initialized")
        return self._engine

    async def initialize(self) -> None:
        """Open storage, reload saved state and build the engine."""
        logger.info("Initializing vault...")

        self._repo = Repository(await self._open_storage())

        transactions = await self._repo.load_transactions()
        alerts = await self._repo.load_alerts()

        self._engine = PortfolioEngine(
            self.registry,
            transactions=transactions,
            alerts=alerts,
            sinks=[LoggingNotificationSink(), self.recent, *self._sinks],
            oversell_policy=self.settings.oversell_policy,
            history_length=self.settings.price_history_length,
        )

        if self._source is None:
            self._source = RandomWalkSource(
                max_move_pct=self.settings.tick_max_move_pct,
                seed=self.settings.feed_seed,
            )
        self._feed = PriceFeedScheduler(self.tick, self.settings.tick_interval_seconds)

        logger.info(
            "Vault initialized: %d transactions, %d alerts",
            len(transactions),
            len(alerts),
        )

    async def _open_storage(self) -> AsyncEngine:
        """Open the database file; an unreadable one is moved aside and replaced.

        If even a fresh file cannot be created, state lives in memory for this run.
        """
        path = Path(self.settings.db_path)
        try:
            return await init_db(str(path))
        except SQLAlchemyError as e:
            logger.warning("Storage at %s is unreadable, starting empty: %s", path, e)

        aside = path.with_name(f"{path.name}.corrupt")
        try:
            path.replace(aside)
            logger.warning("Moved unreadable storage to %s", aside)
            return await init_db(str(path))
        except (OSError, SQLAlchemyError) as e:
            logger.error("Could not recreate storage, changes will not be saved: %s", e)
            return await init_db(":memory:")

    async def shutdown(self) -> None:
        """Stop the feed and close storage."""
        logger.info("Shutting down vault...")
        self._running = False
        if self._feed:
            self._feed.stop()
        if self._repo:
            await self._repo.close()
            self._repo = None
        logger.info("Vault shut down")

    # ── User actions (saved on change) ─────────────────────────
    # A failed save undoes the in-memory change before the StorageError propagates.

    async def add_transaction(
        self,
        instrument_id: str,
        kind: TransactionKind,
        quantity: int,
        price: float,
        *,
        timestamp: datetime | None = None,
    ) -> Transaction:
        tx = self.engine.add_transaction(instrument_id, kind, quantity, price, timestamp=timestamp)
        try:
            await self._save_transactions()
        except StorageError:
            self.engine.remove_transaction(tx.id)
            raise
        return tx

    async def remove_transaction(self, transaction_id: str) -> bool:
        position, tx = _find(self.engine.transactions, transaction_id)
        if tx is None or not self.engine.remove_transaction(transaction_id):
            return False
        try:
            await self._save_transactions()
        except StorageError:
            self.engine.restore_transaction(tx, position)
            raise
        return True

    async def create_alert(
        self, instrument_id: str, target_price: float, direction: AlertDirection
    ) -> PriceAlert:
        alert = self.engine.create_alert(instrument_id, target_price, direction)
        try:
            await self._save_alerts()
        except StorageError:
            self.engine.remove_alert(alert.id)
            raise
        return alert

    async def toggle_alert(self, alert_id: str) -> PriceAlert | None:
        alert = self.engine.toggle_alert(alert_id)
        if alert is None or alert.is_triggered:
            return alert
        try:
            await self._save_alerts()
        except StorageError:
            self.engine.toggle_alert(alert_id)
            raise
        return alert

    async def remove_alert(self, alert_id: str) -> bool:
        position, alert = _find(self.engine.alerts, alert_id)
        if alert is None or not self.engine.remove_alert(alert_id):
            return False
        try:
            await self._save_alerts()
        except StorageError:
            self.engine.restore_alert(alert, position)
            raise
        return True

    # ── Price feed ─────────────────────────────────────────────

    async def tick(self) -> list[AlertNotification]:
        """One feed cycle: pull a batch, apply it, persist any alerts that fired.

        Notifications have already gone out by the time alerts are saved, so a
        failed save keeps the latch in memory and the next successful save
        writes it.
        """
        ticks = self._source.next_batch(utcnow())
        fired = self.engine.process_tick(ticks)
        if fired:
            try:
                await self._save_alerts()
            except StorageError as e:
                logger.error("Could not save %d fired alert(s): %s", len(fired), e)
        return fired

    async def refresh_prices(self) -> None:
        """Pull a batch for valuation only. Alerts are not swept."""
        self.engine.update_prices(self._source.next_batch(utcnow()))

    async def run(self) -> None:
        """Tick on the configured interval until cancelled or ``stop()`` is called."""
        if self._repo is None:
            await self.initialize()
        self._running = True

        # Prime prices so valuations are live from the start.
        await self.tick()
        self._feed.start()

        try:
            while self._running:
                await asyncio.sleep(1)
        except (KeyboardInterrupt, asyncio.CancelledError):
            logger.info("Vault interrupted")
        finally:
            await self.shutdown()

    def stop(self) -> None:
        self._running = False

    async def run_once(self) -> list[AlertNotification]:
        """Run a single feed cycle against saved state (useful for testing)."""
        if self._repo is None:
            await self.initialize()
        try:
            return await self.tick()
        finally:
            await self.shutdown()

    # ── Persistence ────────────────────────────────────────────

    async def _save_transactions(self) -> None:
        async with self._save_lock:
            await self._repo.save_transactions(self.engine.transactions)

    async def _save_alerts(self) -> None:
        async with self._save_lock:
            await self._repo.save_alerts(self.engine.alerts)


def _find(items, item_id: str):
    """Position and record for ``item_id`` in a snapshot list, or ``(None, None)``."""
    for position, item in enumerate(items):
        if item.id == item_id:
            return position, item
    return None, None
