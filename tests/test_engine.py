import threading
from datetime import date, timedelta

import pytest

from trade_emulator.backtest.engine import EmulationEngine, trading_days
from trade_emulator.core.models import VolatilityPoint
from trade_emulator.core.trading_strategy import StrategyKind, TradingStrategy
from trade_emulator.data.market_data import SnapshotAccessor
from trade_emulator.strategies import create_strategy
from trade_emulator.utils.config import EmulationConfig

FRI = date(2021, 1, 1)
MON = date(2021, 1, 4)
TUE = date(2021, 1, 5)
WED = date(2021, 1, 6)


class RecordingStrategy(TradingStrategy):
    """호출된 (종목, 날짜)를 기록하고 지정한 날에 매수."""

    def __init__(self, buy_on=()):
        super().__init__(StrategyKind.MACD)
        self.buy_on = set(buy_on)
        self.calls = []
        self._lock = threading.Lock()

    def should_buy(self, before, current, bar, volatility):
        with self._lock:
            self.calls.append((bar.symbol, bar.date))
        return (bar.symbol, bar.date) in self.buy_on

    def should_sell(self, before, current, bar, volatility):
        return False


class FailingAccessor(SnapshotAccessor):
    def __init__(self, store, failing_symbol):
        super().__init__(store)
        self.failing_symbol = failing_symbol

    def latest_bar_on_or_before(self, symbol, on_or_before):
        if symbol == self.failing_symbol:
            raise ConnectionError("store unavailable")
        return super().latest_bar_on_or_before(symbol, on_or_before)


@pytest.fixture
def market(seed, make_bar, make_snapshot):
    """2020-12-31 ~ 2021-01-08, 평일만 일봉/지표 (AAPL, MSFT)."""
    days = [date(2020, 12, 31) + timedelta(days=i) for i in range(9)]
    weekdays = [d for d in days if d.weekday() < 5]
    bars, snapshots = [], []
    for symbol, base in (("AAPL", 100.0), ("MSFT", 200.0)):
        for i, d in enumerate(weekdays):
            bars.append(make_bar(symbol=symbol, day=d, price=base + i))
            snapshots.append(make_snapshot(symbol=symbol, day=d))
    volatility = [VolatilityPoint(date=d, open=20, high=21, low=19, close=20, sma10=20) for d in weekdays]
    return seed(bars=bars, snapshots=snapshots, volatility=volatility)


def test_trading_days_skip_weekend():
    days = list(trading_days(FRI, date(2021, 1, 5)))
    assert days == [FRI, MON, TUE]


def test_engine_skips_weekends(market):
    strategy = RecordingStrategy()
    engine = EmulationEngine(SnapshotAccessor(market), strategy, EmulationConfig(max_workers=2))

    engine.run(["AAPL", "MSFT"], date(2021, 1, 2), date(2021, 1, 6))

    assert engine.days_run == [MON, TUE, WED]
    assert all(d.weekday() < 5 for _, d in strategy.calls)


def test_last_trading_date_from_first_symbol(market):
    engine = EmulationEngine(SnapshotAccessor(market), RecordingStrategy())
    # 2021-01-10(일) 이하 최신 일봉은 2021-01-08(금)
    assert engine.resolve_last_trading_date(["AAPL"], date(2021, 1, 10)) == date(2021, 1, 8)
    assert engine.resolve_last_trading_date(["NONE"], date(2021, 1, 10)) is None


def test_no_data_gives_empty_report(store):
    engine = EmulationEngine(SnapshotAccessor(store), RecordingStrategy())
    report = engine.run(["AAPL"], MON, WED)
    assert engine.days_run == []
    assert report.cash == 1_000_000
    assert report.last_trading_date is None


def test_day_barrier_keeps_dates_in_order(market):
    strategy = RecordingStrategy()
    engine = EmulationEngine(SnapshotAccessor(market), strategy, EmulationConfig(max_workers=4))

    engine.run(["AAPL", "MSFT"], MON, date(2021, 1, 8))

    call_dates = [d for _, d in strategy.calls]
    assert call_dates == sorted(call_dates)
    assert len(strategy.calls) == 2 * 5


def test_failure_of_one_symbol_is_isolated(market):
    strategy = RecordingStrategy(buy_on={("MSFT", TUE)})
    engine = EmulationEngine(FailingAccessor(market, "AAPL"), strategy, EmulationConfig(max_workers=2))

    report = engine.run(["MSFT", "AAPL"], MON, WED)

    assert engine.days_run == [MON, TUE, WED]
    assert {symbol for symbol, _, _ in engine.failures} == {"AAPL"}
    assert len(engine.failures) == 3
    assert engine.portfolio.get_position("MSFT").is_open
    assert report.open_positions[0].symbol == "MSFT"


class VolatilityDownAccessor(SnapshotAccessor):
    def volatility_pair_on_or_before(self, on_or_before):
        raise ConnectionError("volatility store unavailable")


def test_volatility_failure_does_not_stop_run(market):
    seen = []

    class VolatilityRecorder(RecordingStrategy):
        def should_buy(self, before, current, bar, volatility):
            seen.append(tuple(volatility))
            return super().should_buy(before, current, bar, volatility)

    strategy = VolatilityRecorder(buy_on={("AAPL", TUE)})
    engine = EmulationEngine(VolatilityDownAccessor(market), strategy, EmulationConfig(max_workers=1))

    engine.run(["AAPL"], MON, WED)

    assert engine.days_run == [MON, TUE, WED]
    assert seen == [(), (), ()]
    assert engine.failures == []
    assert engine.portfolio.get_position("AAPL").is_open


def test_open_positions_marked_to_market(market):
    strategy = RecordingStrategy(buy_on={("AAPL", MON)})
    engine = EmulationEngine(SnapshotAccessor(market), strategy, EmulationConfig(max_workers=1))

    report = engine.run(["AAPL", "MSFT"], MON, WED)

    # 12/31=100, 1/1=101 → MON 종가 102, WED 종가 104
    quantity = 5000 // 102
    position = engine.portfolio.get_position("AAPL")
    assert position.quantity == quantity
    assert position.profit == pytest.approx(quantity * (104.0 - 102.0))
    assert report.cash == pytest.approx(1_000_000 - quantity * 102.0)
    assert report.depot_value == pytest.approx(quantity * 104.0)
    assert report.total_value == pytest.approx(report.cash + report.depot_value)
    assert report.open_positions[0].last_price == 104.0


def test_macd_run_end_to_end(seed, make_bar, make_snapshot):
    seed(
        bars=[make_bar(day=MON, price=100.0), make_bar(day=TUE, price=110.0)],
        snapshots=[
            make_snapshot(day=FRI, macd=-1.0),
            make_snapshot(day=MON, macd=1.0),
            make_snapshot(day=TUE, macd=-0.5),
        ],
    )
    engine = EmulationEngine(SnapshotAccessor(seed()), create_strategy("MACD"), EmulationConfig(max_workers=1))

    report = engine.run(["AAPL"], MON, TUE)

    assert [t.side for t in engine.portfolio.trade_history] == ["buy", "sell"]
    assert report.closed_positions[0].profit == pytest.approx(50 * 10.0)
    assert report.cash == pytest.approx(1_000_000 + 500.0 - 125.0)
    assert report.taxes == pytest.approx(125.0)
    assert "AAPL" in report.summary()
