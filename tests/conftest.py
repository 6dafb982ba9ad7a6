"""Shared fixtures: deterministic timestamps, a registry, engines and storage."""

from datetime import UTC, datetime, timedelta

import pytest

from ryaion.config import Settings
from ryaion.db.models import init_db
from ryaion.db.repository import Repository
from ryaion.domain.models import Transaction, TransactionKind
from ryaion.engine import PortfolioEngine
from ryaion.instruments import InstrumentRegistry

T0 = datetime(2024, 6, 3, 9, 15, tzinfo=UTC)


def at(minutes: int) -> datetime:
    """A timestamp ``minutes`` after market open on a fixed day."""
    return T0 + timedelta(minutes=minutes)


def tx(
    tx_id: str,
    kind: str,
    quantity: int,
    price: float,
    minutes: int = 0,
    instrument_id: str = "tcs",
    sequence: int = 0,
) -> Transaction:
    return Transaction(
        id=tx_id,
        instrument_id=instrument_id,
        kind=TransactionKind(kind),
        quantity=quantity,
        price=price,
        timestamp=at(minutes),
        sequence=sequence,
    )


@pytest.fixture
def registry():
    return InstrumentRegistry()


@pytest.fixture
def engine(registry):
    return PortfolioEngine(registry)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        db_path=tmp_path / "vault.db",
        log_dir=tmp_path / "logs",
        feed_seed=7,
    )


@pytest.fixture
async def repo(tmp_path):
    db = await init_db(str(tmp_path / "test.db"))
    repository = Repository(db)
    yield repository
    await repository.close()
