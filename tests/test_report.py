from datetime import date

import pytest

from trade_emulator.backtest.report import build_report
from trade_emulator.data.portfolio import Portfolio

D = date(2021, 1, 4)


def test_report_ranks_by_profit(make_bar):
    portfolio = Portfolio()
    for symbol, buy_price, sell_price in (("A", 100.0, 120.0), ("B", 100.0, 101.0)):
        portfolio.buy(D, symbol, make_bar(symbol=symbol, price=buy_price))
        portfolio.sell(D, symbol, make_bar(symbol=symbol, price=sell_price))
    portfolio.buy(D, "C", make_bar(symbol="C", price=50.0))
    portfolio.buy(D, "D", make_bar(symbol="D", price=50.0))
    portfolio.get_position("E")
    portfolio.mark_to_market("C", 40.0)
    portfolio.mark_to_market("D", 60.0)

    report = build_report(portfolio, {"C": 40.0, "D": 60.0}, "MACD", D, D)

    assert [r.symbol for r in report.closed_positions] == ["B", "A"]
    assert [r.symbol for r in report.open_positions] == ["C", "D"]
    assert report.depot_value == pytest.approx(100 * 40.0 + 100 * 60.0)
    assert report.sell_trades == 2
    assert report.win_rate == 100.0

    text = report.summary()
    assert "MACD" in text
    assert "현금+평가액" in text


def test_empty_report():
    report = build_report(Portfolio(), {})
    assert report.total_value == 1_000_000
    assert report.total_return == 0.0
    assert report.to_dict()["total_value"] == 1_000_000
