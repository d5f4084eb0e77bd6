import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from trade_emulator.core.data_store import Collection
from trade_emulator.core.models import Bar, IndicatorSnapshot
from trade_emulator.data.memory_store import InMemoryDataStore
from trade_emulator.data.portfolio import Portfolio


@pytest.fixture
def make_bar():
    def _make(symbol="AAPL", day=date(2021, 1, 4), price=100.0, **overrides):
        values = {
            "symbol": symbol,
            "date": day,
            "open": price,
            "high": price * 1.01,
            "low": price * 0.99,
            "close": price,
            "adjusted_close": price,
        }
        values.update(overrides)
        return Bar(**values)
    return _make


@pytest.fixture
def make_snapshot():
    def _make(symbol="AAPL", day=date(2021, 1, 4), **values):
        return IndicatorSnapshot(symbol=symbol, date=day, **values)
    return _make


@pytest.fixture
def portfolio():
    return Portfolio(initial_cash=1_000_000, min_buy=1000, max_buy=5000, transaction_fee=0.0, tax_rate=0.25)


@pytest.fixture
def store():
    return InMemoryDataStore()


@pytest.fixture
def seed(store):
    """저장소에 일봉/지표를 넣는 헬퍼."""
    def _seed(bars=(), snapshots=(), volatility=()):
        store.upsert_many(Collection.DAILY_BARS, [b.to_record() for b in bars])
        store.upsert_many(Collection.TECHNICAL_INDICATORS, [s.to_record() for s in snapshots])
        store.upsert_many(Collection.VOLATILITY_INDEX, [v.to_record() for v in volatility])
        return store
    return _seed
