"""Tests for the portfolio engine (state store, ticks, validation)."""

import math
import threading

import pytest
from conftest import at

from ryaion.alerts.sinks import RecentNotifications
from ryaion.config import OversellPolicy
from ryaion.domain.errors import InvalidInputError, OversellError
from ryaion.domain.models import AlertDirection, AlertState, PriceTick, TransactionKind
from ryaion.engine import PortfolioEngine

BUY = TransactionKind.BUY
SELL = TransactionKind.SELL


class TestTransactions:
    def test_scenario_average_cost_and_realized(self, engine):
        engine.add_transaction("tcs", BUY, 10, 100.0, timestamp=at(0))
        engine.add_transaction("tcs", BUY, 10, 200.0, timestamp=at(1))
        engine.add_transaction("tcs", SELL, 5, 300.0, timestamp=at(2))

        holding = engine.holdings()["tcs"]
        assert holding.quantity == 15
        assert holding.avg_cost == 150.0
        assert engine.realized_pl() == 750.0

    def test_assigns_id_sequence_and_timestamp(self, engine):
        first = engine.add_transaction("tcs", BUY, 1, 10.0)
        second = engine.add_transaction("tcs", BUY, 1, 10.0)
        assert first.id != second.id
        assert second.sequence == first.sequence + 1
        assert first.timestamp.tzinfo is not None

    @pytest.mark.parametrize(
        ("quantity", "price"),
        [
            (0, 100.0),
            (-5, 100.0),
            (5, 0.0),
            (5, -1.0),
            (5, math.nan),
            (5, math.inf),
            (2.5, 100.0),
            (True, 100.0),
            (5, "100"),
        ],
    )
    def test_rejects_invalid_numbers(self, engine, quantity, price):
        with pytest.raises(InvalidInputError):
            engine.add_transaction("tcs", BUY, quantity, price)
        assert engine.transactions == []

    def test_rejects_unknown_instrument(self, engine):
        with pytest.raises(InvalidInputError):
            engine.add_transaction("nope", BUY, 1, 10.0)

    def test_any_instrument_without_registry(self):
        engine = PortfolioEngine()
        engine.add_transaction("anything", BUY, 1, 10.0)
        assert "anything" in engine.holdings()

    def test_remove_recomputes(self, engine):
        engine.add_transaction("tcs", BUY, 10, 100.0, timestamp=at(0))
        second = engine.add_transaction("tcs", BUY, 10, 200.0, timestamp=at(1))

        assert engine.remove_transaction(second.id) is True
        holding = engine.holdings()["tcs"]
        assert holding.quantity == 10
        assert holding.avg_cost == 100.0

    def test_remove_unknown_is_noop(self, engine):
        engine.add_transaction("tcs", BUY, 10, 100.0)
        assert engine.remove_transaction("missing") is False
        assert len(engine.transactions) == 1

    def test_restore_puts_record_back_in_place(self, registry):
        engine = PortfolioEngine(registry, oversell_policy=OversellPolicy.REJECT)
        first = engine.add_transaction("tcs", BUY, 10, 100.0, timestamp=at(0))
        middle = engine.add_transaction("tcs", SELL, 4, 120.0, timestamp=at(1))
        last = engine.add_transaction("itc", BUY, 1, 400.0, timestamp=at(2))
        before = engine.ledger()

        engine.remove_transaction(first.id)
        assert engine.ledger().oversells
        engine.remove_transaction(middle.id)
        engine.restore_transaction(middle, 0)
        engine.restore_transaction(first, 0)

        assert [t.id for t in engine.transactions] == [first.id, middle.id, last.id]
        assert engine.ledger() == before
        assert engine.get_transaction(middle.id) == middle
        assert engine.get_transaction("missing") is None

    def test_remove_twice_is_idempotent(self, engine):
        t = engine.add_transaction("tcs", BUY, 10, 100.0)
        assert engine.remove_transaction(t.id) is True
        assert engine.remove_transaction(t.id) is False

    def test_remove_then_reinsert_restores_state(self, engine):
        engine.add_transaction("tcs", BUY, 10, 101.3, timestamp=at(0))
        middle = engine.add_transaction("tcs", BUY, 7, 99.9, timestamp=at(0))
        engine.add_transaction("tcs", SELL, 12, 140.2, timestamp=at(0))
        engine.add_transaction("itc", BUY, 3, 430.0, timestamp=at(3))
        before = engine.ledger()

        engine.remove_transaction(middle.id)
        assert engine.ledger() != before

        engine.insert_transaction(middle)
        assert engine.ledger() == before

    def test_reinserting_identical_record_is_noop(self, engine):
        t = engine.add_transaction("tcs", BUY, 10, 100.0)
        assert engine.insert_transaction(t) == t
        assert len(engine.transactions) == 1

    def test_conflicting_id_rejected(self, engine):
        t = engine.add_transaction("tcs", BUY, 10, 100.0)
        with pytest.raises(InvalidInputError):
            engine.insert_transaction(t.model_copy(update={"quantity": 11}))

    def test_new_ids_continue_after_loaded_sequence(self, registry):
        seed = PortfolioEngine(registry)
        loaded = [seed.add_transaction("tcs", BUY, 1, 10.0) for _ in range(3)]

        engine = PortfolioEngine(registry, transactions=loaded)
        new = engine.add_transaction("tcs", BUY, 1, 10.0)
        assert new.sequence == 3


class TestOversellPolicy:
    def test_clamp_is_default(self, engine):
        engine.add_transaction("tcs", BUY, 10, 100.0, timestamp=at(0))
        engine.add_transaction("tcs", SELL, 20, 150.0, timestamp=at(1))

        ledger = engine.ledger()
        assert ledger.holdings == {}
        assert ledger.realized_pl == 500.0
        assert ledger.oversells[0].filled == 10

    def test_reject_policy(self, registry):
        engine = PortfolioEngine(registry, oversell_policy=OversellPolicy.REJECT)
        engine.add_transaction("tcs", BUY, 10, 100.0, timestamp=at(0))

        with pytest.raises(OversellError) as exc_info:
            engine.add_transaction("tcs", SELL, 20, 150.0, timestamp=at(1))
        assert exc_info.value.requested == 20
        assert exc_info.value.held == 10
        assert len(engine.transactions) == 1

        engine.add_transaction("tcs", SELL, 10, 150.0, timestamp=at(2))
        assert engine.holdings() == {}

    def test_reject_policy_checks_back_dated_sells(self, registry):
        engine = PortfolioEngine(registry, oversell_policy=OversellPolicy.REJECT)
        engine.add_transaction("tcs", BUY, 10, 100.0, timestamp=at(10))

        with pytest.raises(OversellError):
            engine.add_transaction("tcs", SELL, 5, 150.0, timestamp=at(0))


class TestPriceTicks:
    def test_valuation_uses_latest_prices(self, engine):
        engine.add_transaction("tcs", BUY, 10, 100.0)
        assert engine.valuation().rows[0].is_stale is True

        engine.apply_price_tick("tcs", 120.0)
        row = engine.valuation().rows[0]
        assert row.is_stale is False
        assert row.unrealized_pl == 200.0

    @pytest.mark.parametrize("price", [0.0, -1.0, math.nan, math.inf])
    def test_rejects_invalid_price(self, engine, price):
        engine.create_alert("tcs", 100.0, AlertDirection.ABOVE)
        with pytest.raises(InvalidInputError):
            engine.apply_price_tick("tcs", price)
        assert engine.prices.latest("tcs") is None
        assert engine.alerts[0].state == AlertState.ARMED

    def test_update_prices_does_not_sweep_alerts(self, engine):
        engine.create_alert("tcs", 100.0, AlertDirection.ABOVE)
        engine.update_prices([PriceTick(instrument_id="tcs", price=150.0, timestamp=at(1))])
        assert engine.prices.latest("tcs") == 150.0
        assert engine.alerts[0].state == AlertState.ARMED

    def test_alert_scenario(self, registry):
        recent = RecentNotifications()
        engine = PortfolioEngine(registry, sinks=[recent])
        alert = engine.create_alert("reliance", 500.0, AlertDirection.ABOVE)

        assert engine.apply_price_tick("reliance", 480.0) == []
        assert engine.apply_price_tick("reliance", 505.0)[0].alert_id == alert.id
        assert engine.apply_price_tick("reliance", 510.0) == []
        assert len(recent) == 1
        assert engine.alerts[0].state == AlertState.TRIGGERED

    def test_batch_tick_applies_prices_before_alerts(self, engine):
        engine.create_alert("tcs", 100.0, AlertDirection.ABOVE)
        engine.create_alert("itc", 50.0, AlertDirection.BELOW)

        fired = engine.process_tick(
            [
                PriceTick(instrument_id="tcs", price=101.0, timestamp=at(1)),
                PriceTick(instrument_id="itc", price=49.0, timestamp=at(1)),
                PriceTick(instrument_id="infy", price=1400.0, timestamp=at(1)),
            ]
        )
        assert {n.instrument_id for n in fired} == {"tcs", "itc"}
        assert all(n.triggered_at == at(1) for n in fired)
        assert engine.prices.latest_prices() == {"tcs": 101.0, "itc": 49.0, "infy": 1400.0}

    def test_empty_batch(self, engine):
        assert engine.process_tick([]) == []

    def test_concurrent_ticks_fire_each_alert_once(self, registry):
        recent = RecentNotifications(maxlen=1000)
        engine = PortfolioEngine(registry, sinks=[recent])
        for i in range(50):
            engine.create_alert("tcs", 100.0 + i, AlertDirection.ABOVE)

        def feed():
            for _ in range(20):
                engine.apply_price_tick("tcs", 500.0)

        threads = [threading.Thread(target=feed) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        ids = [n.alert_id for n in recent.items()]
        assert len(ids) == 50
        assert len(set(ids)) == 50


class TestAlertActions:
    def test_create_for_unknown_instrument_rejected(self, engine):
        with pytest.raises(InvalidInputError):
            engine.create_alert("nope", 10.0, AlertDirection.ABOVE)

    def test_toggle_and_remove(self, engine):
        alert = engine.create_alert("tcs", 10.0, AlertDirection.ABOVE)
        assert engine.toggle_alert(alert.id).state == AlertState.STANDBY
        assert engine.remove_alert(alert.id) is True
        assert engine.alerts == []
        assert engine.toggle_alert(alert.id) is None
