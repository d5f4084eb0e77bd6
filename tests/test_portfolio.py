import math
import threading
from datetime import date

import pytest

from trade_emulator.core.models import Bar
from trade_emulator.data.portfolio import Portfolio
from trade_emulator.utils.config import EmulationConfig

D = date(2021, 1, 4)


def test_buy_deducts_quantity_times_price(portfolio, make_bar):
    assert portfolio.buy(D, "AAPL", make_bar(price=123.0))

    quantity = math.floor(5000 / 123.0)
    position = portfolio.get_position("AAPL")
    assert position.quantity == quantity
    assert position.avg_price == 123.0
    assert portfolio.cash == 1_000_000 - quantity * 123.0
    assert portfolio.trade_history[-1].side == "buy"


def test_buy_with_fee(make_bar):
    portfolio = Portfolio(transaction_fee=7.9)
    portfolio.buy(D, "AAPL", make_bar(price=100.0))

    # min(5000, cash - fee) / price → 50주
    assert portfolio.get_position("AAPL").quantity == 50
    assert portfolio.cash == pytest.approx(1_000_000 - 50 * 100.0 - 7.9)
    assert portfolio.transaction_fees == pytest.approx(7.9)


def test_averaging_down_keeps_weighted_mean(portfolio, make_bar):
    prices = [100.0, 80.0, 64.0]
    for price in prices:
        assert portfolio.buy(D, "AAPL", make_bar(price=price))

    buys = [t for t in portfolio.trade_history if t.side == "buy"]
    total_quantity = sum(t.quantity for t in buys)
    expected = sum(t.quantity * t.price for t in buys) / total_quantity

    position = portfolio.get_position("AAPL")
    assert position.quantity == total_quantity
    assert position.avg_price == pytest.approx(expected)


def test_refuses_buy_at_or_above_average(portfolio, make_bar):
    portfolio.buy(D, "AAPL", make_bar(price=100.0))
    cash = portfolio.cash
    before = portfolio.get_position("AAPL").to_dict()

    assert not portfolio.buy(D, "AAPL", make_bar(price=100.0))
    assert not portfolio.buy(D, "AAPL", make_bar(price=120.0))
    assert portfolio.cash == cash
    assert portfolio.get_position("AAPL").to_dict() == before
    assert len(portfolio.trade_history) == 1


def test_refuses_buy_without_enough_cash(make_bar):
    portfolio = Portfolio(initial_cash=999)
    assert not portfolio.buy(D, "AAPL", make_bar(price=10.0))
    assert portfolio.cash == 999
    assert not portfolio.get_position("AAPL").is_open


def test_refuses_buy_when_one_share_exceeds_max_buy(portfolio, make_bar):
    assert not portfolio.buy(D, "AMZN", make_bar(symbol="AMZN", price=6000.0))
    assert portfolio.cash == 1_000_000
    assert portfolio.get_position("AMZN").avg_price is None


def test_sell_without_position_is_noop(portfolio, make_bar):
    assert not portfolio.sell(D, "AAPL", make_bar(price=100.0), force=True)
    assert portfolio.cash == 1_000_000
    assert portfolio.get_position("AAPL").quantity == 0


def test_sell_below_average_requires_force(portfolio, make_bar):
    portfolio.buy(D, "AAPL", make_bar(price=100.0))
    assert not portfolio.sell(D, "AAPL", make_bar(price=100.0))
    assert not portfolio.sell(D, "AAPL", make_bar(price=90.0))
    assert portfolio.get_position("AAPL").quantity == 50


def test_sell_with_profit_pays_tax(portfolio, make_bar):
    portfolio.buy(D, "AAPL", make_bar(price=100.0))
    cash = portfolio.cash

    assert portfolio.sell(D, "AAPL", make_bar(price=110.0))

    profit = 50 * 10.0
    tax = profit * 0.25
    assert portfolio.cash == pytest.approx(cash + 50 * 110.0 - tax)
    assert portfolio.taxes == pytest.approx(tax)
    position = portfolio.get_position("AAPL")
    assert position.quantity == 0
    assert position.avg_price is None
    assert position.profit == pytest.approx(profit)


def test_forced_sell_at_loss_gives_negative_tax(portfolio):
    position = portfolio.get_position("X")
    position.quantity = 10
    position.avg_price = 100.0
    position.stop_loss = 80.0
    position.profit_target = 120.0
    cash = portfolio.cash

    bar = Bar(symbol="X", date=D, open=95, high=96, low=89, close=92, adjusted_close=92)
    assert portfolio.sell(D, "X", bar, force=True, sell_price=90.0)

    # 10 * 90 - 0 - (-25)
    assert portfolio.cash == pytest.approx(cash + 925.0)
    assert portfolio.taxes == pytest.approx(-25.0)
    assert position.profit == pytest.approx(-100.0)
    assert position.stop_loss is None
    assert position.profit_target is None


def test_split_adjust(portfolio):
    position = portfolio.get_position("X")
    position.quantity = 10
    position.avg_price = 50.0
    position.stop_loss = 40.0
    position.profit_target = 60.0

    portfolio.split_adjust("X", 2)

    assert position.quantity == 20
    assert position.avg_price == 25.0
    assert position.stop_loss == 20.0
    assert position.profit_target == 30.0


def test_split_adjust_without_position(portfolio):
    portfolio.split_adjust("X", 4)
    position = portfolio.get_position("X")
    assert position.quantity == 0
    assert position.avg_price is None


def test_split_adjust_rejects_non_positive(portfolio):
    with pytest.raises(ValueError):
        portfolio.split_adjust("X", 0)


def test_mark_to_market_leaves_cash(portfolio, make_bar):
    portfolio.buy(D, "AAPL", make_bar(price=100.0))
    cash = portfolio.cash

    unrealized = portfolio.mark_to_market("AAPL", 120.0)

    assert unrealized == pytest.approx(50 * 20.0)
    assert portfolio.get_position("AAPL").profit == pytest.approx(1000.0)
    assert portfolio.cash == cash
    assert portfolio.mark_to_market("MSFT", 10.0) == 0.0


def test_depot_value(portfolio, make_bar):
    portfolio.buy(D, "AAPL", make_bar(price=100.0))
    portfolio.buy(D, "MSFT", make_bar(symbol="MSFT", price=200.0))
    assert portfolio.depot_value({"AAPL": 110.0, "MSFT": 190.0}) == pytest.approx(50 * 110.0 + 25 * 190.0)


def test_from_config():
    config = EmulationConfig(initial_cash=5000, max_buy=1000, tax_rate=0.0, serialize_ledger=False)
    portfolio = Portfolio.from_config(config)
    assert portfolio.cash == 5000
    assert portfolio.max_buy == 1000
    assert portfolio.tax_rate == 0.0


def test_concurrent_buys_never_overdraw(make_bar):
    portfolio = Portfolio(initial_cash=20_000)
    symbols = [f"S{i}" for i in range(20)]
    portfolio.open_positions(symbols)

    threads = [
        threading.Thread(target=portfolio.buy, args=(D, s, make_bar(symbol=s, price=100.0)))
        for s in symbols
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert portfolio.cash >= 0
    assert len(portfolio.get_holding_symbols()) == 4
    assert portfolio.cash == pytest.approx(0.0)
