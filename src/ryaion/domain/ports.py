"""Port interfaces (Protocols) that the engine depends on.

Adapters implement these so the engine never couples to a specific price
source, notification channel, or database.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from ryaion.domain.models import AlertNotification, PriceAlert, PriceTick, Transaction

# ── Notification Sink ───────────────────────────────────────────


class NotificationSink(Protocol):
    """Receives each alert firing exactly once. Rendering and retention are its business."""

    def notify(self, notification: AlertNotification) -> None: ...


# ── Price Source ────────────────────────────────────────────────


class PriceSource(Protocol):
    """Produces one batch of ticks, one per instrument, for each feed cycle."""

    def next_batch(self, timestamp: datetime) -> list[PriceTick]: ...


# ── State Repository ────────────────────────────────────────────


class StateRepository(Protocol):
    """Persistence port for the transaction log and the alert set.

    Loads never raise: missing or unreadable storage yields an empty list.
    """

    async def load_transactions(self) -> list[Transaction]: ...
    async def save_transactions(self, transactions: Sequence[Transaction]) -> None: ...
    async def load_alerts(self) -> list[PriceAlert]: ...
    async def save_alerts(self, alerts: Sequence[PriceAlert]) -> None: ...
