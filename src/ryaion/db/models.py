"""SQLModel table definitions and database initialization."""

from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import Field, SQLModel


class TransactionRecord(SQLModel, table=True):
    """Stored copy of a ledger transaction."""

    __tablename__ = "transactions"

    id: str = Field(primary_key=True)
    sequence: int = Field(default=0, index=True)
    instrument_id: str = Field(index=True)
    kind: str  # 'buy' or 'sell'
    quantity: int
    price: float
    timestamp: datetime


class AlertRecord(SQLModel, table=True):
    """Stored copy of a price alert, including its lifecycle state."""

    __tablename__ = "price_alerts"

    id: str = Field(primary_key=True)
    position: int = Field(default=0)  # keeps creation order across reloads
    instrument_id: str = Field(index=True)
    target_price: float
    direction: str  # 'above' or 'below'
    state: str  # 'armed', 'standby', 'triggered'
    created_at: datetime
    triggered_at: datetime | None = None
    triggered_price: float | None = None


async def init_db(db_path: str) -> AsyncEngine:
    """Create the async engine and make sure both tables exist (idempotent)."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")

    try:
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
    except SQLAlchemyError:
        await engine.dispose()
        raise

    return engine
