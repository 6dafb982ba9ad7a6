"""Domain models — instruments, ledger records, price alerts and valuation output."""

import math
import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from ryaion.domain.errors import InvalidInputError


def _as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    """Short random id for transactions and alerts."""
    return uuid.uuid4().hex[:12]


def require_quantity(quantity: object) -> int:
    """Whole number of units, at least one."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInputError(f"Quantity must be a whole number, got {quantity!r}")
    if quantity <= 0:
        raise InvalidInputError(f"Quantity must be positive, got {quantity}")
    return quantity


def require_price(value: object, label: str = "Price") -> float:
    """Finite and strictly positive. NaN and infinity are rejected."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidInputError(f"{label} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidInputError(f"{label} must be finite, got {value}")
    if value <= 0:
        raise InvalidInputError(f"{label} must be positive, got {value}")
    return float(value)


# ── Reference Data ──────────────────────────────────────────────


class Instrument(BaseModel):
    """A tradable symbol. Immutable for the session."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    symbol: str = Field(min_length=1, description="Display ticker, unique")
    name: str = ""
    sector: str = "Unknown"


# ── Ledger ──────────────────────────────────────────────────────


class TransactionKind(str, Enum):
    BUY = "buy"
    SELL = "sell"


class Transaction(BaseModel):
    """One executed buy or sell. Never mutated once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    instrument_id: str = Field(min_length=1)
    kind: TransactionKind
    quantity: int = Field(gt=0, description="Units bought or sold")
    price: float = Field(gt=0, allow_inf_nan=False, description="Execution price per unit")
    timestamp: UtcDatetime = Field(default_factory=utcnow)
    sequence: int = Field(default=0, ge=0, description="Insertion order, breaks timestamp ties")


class Holding(BaseModel):
    """Open position in one instrument at its moving-average cost."""

    instrument_id: str
    quantity: int = Field(ge=0)
    avg_cost: float = Field(ge=0)

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.avg_cost


class Oversell(BaseModel):
    """A SELL that asked for more than was held and was clamped."""

    transaction_id: str
    instrument_id: str
    requested: int
    filled: int


class LedgerSummary(BaseModel):
    """Everything derived from folding the transaction log."""

    holdings: dict[str, Holding] = Field(default_factory=dict)
    realized_pl: float = 0.0
    realized_by_instrument: dict[str, float] = Field(default_factory=dict)
    oversells: list[Oversell] = Field(default_factory=list)


# ── Prices ──────────────────────────────────────────────────────


class PriceTick(BaseModel):
    """One price observation from the feed."""

    model_config = ConfigDict(frozen=True)

    instrument_id: str
    price: float = Field(gt=0, allow_inf_nan=False)
    timestamp: UtcDatetime = Field(default_factory=utcnow)


# ── Alerts ──────────────────────────────────────────────────────


class AlertDirection(str, Enum):
    ABOVE = "above"
    BELOW = "below"


class AlertState(str, Enum):
    """Alert lifecycle. TRIGGERED is terminal."""

    ARMED = "armed"
    STANDBY = "standby"
    TRIGGERED = "triggered"


class PriceAlert(BaseModel):
    """A one-shot price threshold on a single instrument."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    instrument_id: str = Field(min_length=1)
    target_price: float = Field(gt=0, allow_inf_nan=False)
    direction: AlertDirection
    state: AlertState = AlertState.ARMED
    created_at: UtcDatetime = Field(default_factory=utcnow)
    triggered_at: UtcDatetime | None = None
    triggered_price: float | None = None

    @property
    def is_active(self) -> bool:
        return self.state == AlertState.ARMED

    @property
    def is_triggered(self) -> bool:
        return self.state == AlertState.TRIGGERED

    def matches(self, price: float) -> bool:
        """Whether ``price`` satisfies the threshold, regardless of state."""
        if self.direction == AlertDirection.ABOVE:
            return price >= self.target_price
        return price <= self.target_price


class AlertNotification(BaseModel):
    """Emitted exactly once when an alert fires."""

    model_config = ConfigDict(frozen=True)

    sequence: int
    alert_id: str
    instrument_id: str
    price: float
    direction: AlertDirection
    target_price: float
    triggered_at: UtcDatetime


# ── Valuation ───────────────────────────────────────────────────


class ValuationRow(BaseModel):
    """Live figures for one open holding."""

    instrument_id: str
    symbol: str
    sector: str
    quantity: int
    avg_cost: float
    live_price: float
    market_value: float
    invested_value: float
    unrealized_pl: float
    pct_change: float
    is_stale: bool = Field(
        default=False, description="No live price; valued at cost basis instead"
    )


class ValuationTotals(BaseModel):
    invested_value: float = 0.0
    current_value: float = 0.0
    unrealized_pl: float = 0.0
    pct_change: float = 0.0


class AllocationSlice(BaseModel):
    """Share of current value held in one instrument or sector."""

    key: str
    market_value: float
    share: float


class Valuation(BaseModel):
    rows: list[ValuationRow] = Field(default_factory=list)
    totals: ValuationTotals = Field(default_factory=ValuationTotals)
    allocation: list[AllocationSlice] = Field(default_factory=list)
    sector_allocation: list[AllocationSlice] = Field(default_factory=list)

    @property
    def stale_rows(self) -> list[ValuationRow]:
        return [r for r in self.rows if r.is_stale]
