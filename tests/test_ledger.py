"""Tests for the ledger reducer (holdings, moving-average cost, realized P&L)."""

import random

from conftest import tx

from ryaion.portfolio.ledger import (
    compute_holdings,
    compute_realized_pl,
    find_new_oversells,
    ordered,
    reduce_ledger,
)


class TestAverageCost:
    def test_two_buys_then_partial_sell(self):
        txs = [
            tx("b1", "buy", 10, 100.0, minutes=0),
            tx("b2", "buy", 10, 200.0, minutes=1),
        ]
        holding = compute_holdings(txs)["tcs"]
        assert holding.quantity == 20
        assert holding.avg_cost == 150.0

        txs.append(tx("s1", "sell", 5, 300.0, minutes=2))
        summary = reduce_ledger(txs)
        holding = summary.holdings["tcs"]
        assert holding.quantity == 15
        assert holding.avg_cost == 150.0
        assert summary.realized_pl == 750.0

    def test_sell_does_not_move_average_cost(self):
        txs = [
            tx("b1", "buy", 4, 50.0, minutes=0),
            tx("s1", "sell", 1, 10.0, minutes=1),
            tx("b2", "buy", 3, 120.0, minutes=2),
        ]
        holding = compute_holdings(txs)["tcs"]
        assert holding.quantity == 6
        assert holding.avg_cost == (3 * 50.0 + 3 * 120.0) / 6

    def test_realized_loss(self):
        txs = [
            tx("b1", "buy", 10, 100.0, minutes=0),
            tx("s1", "sell", 10, 80.0, minutes=1),
        ]
        assert compute_realized_pl(txs) == -200.0

    def test_instruments_are_independent(self):
        txs = [
            tx("b1", "buy", 10, 100.0, minutes=0, instrument_id="tcs"),
            tx("b2", "buy", 5, 40.0, minutes=1, instrument_id="itc"),
            tx("s1", "sell", 5, 60.0, minutes=2, instrument_id="itc"),
        ]
        summary = reduce_ledger(txs)
        assert set(summary.holdings) == {"tcs"}
        assert summary.realized_by_instrument == {"itc": 100.0}
        assert summary.realized_pl == 100.0


class TestEmptyAndClosed:
    def test_no_transactions(self):
        summary = reduce_ledger([])
        assert summary.holdings == {}
        assert summary.realized_pl == 0
        assert summary.oversells == []

    def test_closed_position_is_excluded_but_keeps_realized(self):
        txs = [
            tx("b1", "buy", 10, 100.0, minutes=0),
            tx("s1", "sell", 10, 130.0, minutes=1),
        ]
        summary = reduce_ledger(txs)
        assert summary.holdings == {}
        assert summary.realized_pl == 300.0

    def test_reopened_position_starts_fresh_average(self):
        txs = [
            tx("b1", "buy", 10, 100.0, minutes=0),
            tx("s1", "sell", 10, 130.0, minutes=1),
            tx("b2", "buy", 2, 500.0, minutes=2),
        ]
        holding = compute_holdings(txs)["tcs"]
        assert holding.quantity == 2
        assert holding.avg_cost == 500.0


class TestOversell:
    def test_oversell_is_clamped_to_held_quantity(self):
        txs = [
            tx("b1", "buy", 10, 100.0, minutes=0),
            tx("s1", "sell", 20, 150.0, minutes=1),
        ]
        summary = reduce_ledger(txs)
        assert "tcs" not in summary.holdings
        assert summary.realized_pl == (150.0 - 100.0) * 10
        assert len(summary.oversells) == 1
        oversell = summary.oversells[0]
        assert oversell.transaction_id == "s1"
        assert oversell.requested == 20
        assert oversell.filled == 10

    def test_sell_with_nothing_held(self):
        summary = reduce_ledger([tx("s1", "sell", 3, 99.0)])
        assert summary.holdings == {}
        assert summary.realized_pl == 0
        assert summary.oversells[0].filled == 0

    def test_find_new_oversells(self):
        base = [tx("b1", "buy", 5, 10.0, minutes=0)]
        before = reduce_ledger(base)
        after = reduce_ledger([*base, tx("s1", "sell", 6, 10.0, minutes=1)])
        new = find_new_oversells(before, after)
        assert [o.transaction_id for o in new] == ["s1"]
        assert find_new_oversells(after, after) == []


class TestOrdering:
    def test_fold_follows_timestamps_not_list_order(self):
        txs = [
            tx("s1", "sell", 5, 300.0, minutes=2),
            tx("b2", "buy", 10, 200.0, minutes=1),
            tx("b1", "buy", 10, 100.0, minutes=0),
        ]
        summary = reduce_ledger(txs)
        assert summary.holdings["tcs"].quantity == 15
        assert summary.realized_pl == 750.0
        assert summary.oversells == []

    def test_permutations_give_identical_results(self):
        txs = [
            tx("b1", "buy", 7, 101.5, minutes=0),
            tx("b2", "buy", 3, 99.25, minutes=5),
            tx("s1", "sell", 4, 120.0, minutes=5, sequence=1),
            tx("b3", "buy", 9, 88.0, minutes=9),
            tx("s2", "sell", 20, 95.0, minutes=12),
            tx("b4", "buy", 2, 77.7, minutes=15, instrument_id="itc"),
        ]
        expected = reduce_ledger(txs)
        rng = random.Random(3)
        for _ in range(10):
            shuffled = txs[:]
            rng.shuffle(shuffled)
            assert reduce_ledger(shuffled) == expected

    def test_timestamp_ties_broken_by_sequence(self):
        first = tx("b1", "buy", 10, 100.0, minutes=0, sequence=0)
        second = tx("s1", "sell", 10, 120.0, minutes=0, sequence=1)
        assert [t.id for t in ordered([second, first])] == ["b1", "s1"]
        assert compute_realized_pl([second, first]) == 200.0


class TestInvariants:
    def test_quantity_never_negative_and_avg_zero_when_flat(self):
        rng = random.Random(11)
        txs = []
        for i in range(200):
            kind = rng.choice(["buy", "sell"])
            instrument = rng.choice(["tcs", "itc", "infy"])
            txs.append(
                tx(
                    f"t{i}",
                    kind,
                    rng.randint(1, 25),
                    round(rng.uniform(50, 500), 2),
                    minutes=i,
                    instrument_id=instrument,
                )
            )
            for holding in compute_holdings(txs).values():
                assert holding.quantity > 0
                assert holding.avg_cost > 0
