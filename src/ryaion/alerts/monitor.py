"""Alert monitor — watches live prices and fires each price alert at most once."""

import itertools
import logging
import threading
from collections.abc import Iterable, Mapping
from datetime import datetime

from ryaion.domain.errors import InvalidInputError
from ryaion.domain.models import (
    AlertDirection,
    AlertNotification,
    AlertState,
    PriceAlert,
    new_id,
    require_price,
    utcnow,
)
from ryaion.domain.ports import NotificationSink

logger = logging.getLogger(__name__)


class AlertMonitor:
    """Sole owner of alert state transitions.

    ARMED ⇄ STANDBY via ``toggle_alert``; ARMED → TRIGGERED when a price
    crosses the target. TRIGGERED is terminal: the only way out is removal.
    All reads and transitions go through one lock, so a tick evaluating an
    alert and a user toggling or deleting it never race.
    """

    def __init__(
        self,
        alerts: Iterable[PriceAlert] = (),
        sinks: Iterable[NotificationSink] = (),
    ) -> None:
        self._lock = threading.RLock()
        self._alerts: dict[str, PriceAlert] = {a.id: a for a in alerts}
        self._sinks: list[NotificationSink] = list(sinks)
        self._sequence = itertools.count(1)

    # ── User actions ───────────────────────────────────────────

    def create_alert(
        self,
        instrument_id: str,
        target_price: float,
        direction: AlertDirection,
        *,
        alert_id: str | None = None,
        created_at: datetime | None = None,
    ) -> PriceAlert:
        """Create a new ARMED alert."""
        target_price = require_price(target_price, "Target price")

        try:
            alert = PriceAlert(
                id=alert_id or new_id(),
                instrument_id=instrument_id,
                target_price=target_price,
                direction=AlertDirection(direction),
                created_at=created_at or utcnow(),
            )
        except ValueError as e:
            raise InvalidInputError(f"Invalid alert: {e}") from e
        with self._lock:
            if alert.id in self._alerts:
                raise InvalidInputError(f"Alert {alert.id} already exists")
            self._alerts[alert.id] = alert

        logger.info(
            "Alert %s armed: %s %s %.2f",
            alert.id,
            alert.instrument_id,
            alert.direction.value,
            alert.target_price,
        )
        return alert

    def toggle_alert(self, alert_id: str) -> PriceAlert | None:
        """Flip ARMED ⇄ STANDBY. Triggered or unknown alerts are left alone."""
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None or alert.is_triggered:
                return alert
            new_state = AlertState.STANDBY if alert.is_active else AlertState.ARMED
            alert = alert.model_copy(update={"state": new_state})
            self._alerts[alert_id] = alert

        logger.info("Alert %s is now %s", alert_id, new_state.value)
        return alert

    def remove_alert(self, alert_id: str) -> bool:
        """Stop watching an alert. Returns False if there was nothing to remove."""
        with self._lock:
            removed = self._alerts.pop(alert_id, None)
        if removed is not None:
            logger.info("Alert %s removed", alert_id)
        return removed is not None

    def restore_alert(self, alert: PriceAlert, position: int | None = None) -> None:
        """Put back a removed alert exactly as it was, at its old place."""
        with self._lock:
            if alert.id in self._alerts:
                return
            items = list(self._alerts.items())
            items.insert(len(items) if position is None else position, (alert.id, alert))
            self._alerts = dict(items)
        logger.info("Alert %s restored", alert.id)

    # ── Queries ────────────────────────────────────────────────

    def get(self, alert_id: str) -> PriceAlert | None:
        with self._lock:
            return self._alerts.get(alert_id)

    @property
    def alerts(self) -> list[PriceAlert]:
        """Snapshot of every alert, oldest first."""
        with self._lock:
            return list(self._alerts.values())

    def add_sink(self, sink: NotificationSink) -> None:
        self._sinks.append(sink)

    # ── Evaluation ─────────────────────────────────────────────

    def evaluate(
        self, prices: Mapping[str, float], timestamp: datetime | None = None
    ) -> list[AlertNotification]:
        """Check every ARMED alert against this tick's prices.

        Each matching alert is latched to TRIGGERED and yields one
        notification. Sinks are called after the whole sweep, in order.
        """
        when = timestamp or utcnow()
        fired: list[AlertNotification] = []

        with self._lock:
            for alert_id, alert in list(self._alerts.items()):
                if not alert.is_active:
                    continue
                price = prices.get(alert.instrument_id)
                if price is None or not alert.matches(price):
                    continue

                self._alerts[alert_id] = alert.model_copy(
                    update={
                        "state": AlertState.TRIGGERED,
                        "triggered_at": when,
                        "triggered_price": price,
                    }
                )
                fired.append(
                    AlertNotification(
                        sequence=next(self._sequence),
                        alert_id=alert_id,
                        instrument_id=alert.instrument_id,
                        price=price,
                        direction=alert.direction,
                        target_price=alert.target_price,
                        triggered_at=when,
                    )
                )

        for notification in fired:
            logger.info(
                "Alert %s triggered: %s at %.2f (%s %.2f)",
                notification.alert_id,
                notification.instrument_id,
                notification.price,
                notification.direction.value,
                notification.target_price,
            )
            self._emit(notification)
        return fired

    def _emit(self, notification: AlertNotification) -> None:
        for sink in self._sinks:
            try:
                sink.notify(notification)
            except Exception:
                logger.exception(
                    "Notification sink %s failed for alert %s",
                    type(sink).__name__,
                    notification.alert_id,
                )
