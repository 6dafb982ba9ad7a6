"""Data access layer using SQLModel."""

import logging
from collections.abc import Sequence

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from ryaion.db.models import AlertRecord, TransactionRecord
from ryaion.domain.errors import StorageError
from ryaion.domain.models import PriceAlert, Transaction

logger = logging.getLogger(__name__)

# Anything that can go wrong reading back rows we did not necessarily write.
_LOAD_ERRORS = (SQLAlchemyError, ValidationError, ValueError, TypeError)


class Repository:
    """Stores the transaction log and the alert set as flat lists.

    Saving replaces the whole stored list; loading returns it verbatim, or an
    empty list if the storage is missing or unreadable.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def close(self) -> None:
        await self._engine.dispose()

    # ── Transactions ────────────────────────────────────────────

    async def load_transactions(self) -> list[Transaction]:
        try:
            async with AsyncSession(self._engine) as session:
                statement = select(TransactionRecord).order_by(TransactionRecord.sequence)
                results = await session.exec(statement)
                return [Transaction.model_validate(row.model_dump()) for row in results.all()]
        except _LOAD_ERRORS as e:
            logger.warning("Could not load transactions, starting empty: %s", e)
            return []

    async def save_transactions(self, transactions: Sequence[Transaction]) -> None:
        records = [
            TransactionRecord(
                id=t.id,
                sequence=t.sequence,
                instrument_id=t.instrument_id,
                kind=t.kind.value,
                quantity=t.quantity,
                price=t.price,
                timestamp=t.timestamp,
            )
            for t in transactions
        ]
        await self._replace_all(TransactionRecord, records)

    # ── Alerts ──────────────────────────────────────────────────

    async def load_alerts(self) -> list[PriceAlert]:
        try:
            async with AsyncSession(self._engine) as session:
                statement = select(AlertRecord).order_by(AlertRecord.position)
                results = await session.exec(statement)
                return [
                    PriceAlert.model_validate(row.model_dump(exclude={"position"}))
                    for row in results.all()
                ]
        except _LOAD_ERRORS as e:
            logger.warning("Could not load alerts, starting empty: %s", e)
            return []

    async def save_alerts(self, alerts: Sequence[PriceAlert]) -> None:
        records = [
            AlertRecord(
                id=a.id,
                position=position,
                instrument_id=a.instrument_id,
                target_price=a.target_price,
                direction=a.direction.value,
                state=a.state.value,
                created_at=a.created_at,
                triggered_at=a.triggered_at,
                triggered_price=a.triggered_price,
            )
            for position, a in enumerate(alerts)
        ]
        await self._replace_all(AlertRecord, records)

    # ── Helpers ─────────────────────────────────────────────────

    async def _replace_all(self, table: type[SQLModel], records: Sequence[SQLModel]) -> None:
        try:
            async with AsyncSession(self._engine) as session:
                existing = await session.exec(select(table))
                for row in existing.all():
                    await session.delete(row)
                await session.flush()
                session.add_all(records)
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Saving {table.__tablename__} failed: {e}") from e
