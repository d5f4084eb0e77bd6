from datetime import date
from types import SimpleNamespace

import pandas as pd
import pytest
from clickhouse_connect.driver.exceptions import OperationalError

from trade_emulator.core.data_store import Collection
from trade_emulator.data import clickhouse_store
from trade_emulator.data.clickhouse_store import ClickHouseDataStore
from trade_emulator.ingestion.clickhouse_schema import TABLE_COLUMNS


class FakeClient:
    """query/insert 호출을 기록하는 ClickHouse 클라이언트 대역."""

    def __init__(self, failures=0, rows=()):
        self.failures = failures
        self.rows = list(rows)
        self.queries = []
        self.inserts = []

    def query(self, query, parameters=None):
        self.queries.append((query, parameters))
        if self.failures:
            self.failures -= 1
            raise OperationalError("connection reset")
        return SimpleNamespace(column_names=["symbol", "date", "close"], result_rows=self.rows)

    def insert(self, table, data, column_names=None):
        self.inserts.append((table, data, column_names))


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(clickhouse_store.time, "sleep", lambda seconds: None)


def test_query_reads_final_with_limit():
    client = FakeClient(rows=[("AAPL", date(2021, 1, 5), 2.0), ("AAPL", date(2021, 1, 4), 1.0)])
    store = ClickHouseDataStore(client=client)

    rows = store.find_latest_on_or_before(Collection.TECHNICAL_INDICATORS, "AAPL", date(2021, 1, 5), 2)

    query, parameters = client.queries[0]
    assert "technical_indicators FINAL" in query
    assert "LIMIT 2" in query
    assert parameters == {"date": date(2021, 1, 5), "symbol": "AAPL"}
    assert rows[0] == {"symbol": "AAPL", "date": date(2021, 1, 5), "close": 2.0}


def test_volatility_query_has_no_symbol():
    client = FakeClient()
    store = ClickHouseDataStore(client=client)
    store.find_latest_on_or_before(Collection.VOLATILITY_INDEX, None, date(2021, 1, 5), 2)

    query, parameters = client.queries[0]
    assert "symbol" not in parameters
    assert "symbol =" not in query


def test_retries_transient_errors():
    client = FakeClient(failures=2)
    store = ClickHouseDataStore(client=client, max_retries=3)

    assert store.find_latest_on_or_before(Collection.DAILY_BARS, "AAPL", date(2021, 1, 5)) == []
    assert len(client.queries) == 3


def test_gives_up_after_max_retries():
    client = FakeClient(failures=10)
    store = ClickHouseDataStore(client=client, max_retries=2)

    with pytest.raises(OperationalError):
        store.find_latest_on_or_before(Collection.DAILY_BARS, "AAPL", date(2021, 1, 5))
    assert len(client.queries) == 3


def test_upsert_many_orders_columns_and_dates():
    client = FakeClient()
    store = ClickHouseDataStore(client=client)
    record = {"date": pd.Timestamp("2021-01-04"), "open": 1, "high": 2, "low": 0.5, "close": 1.5}

    assert store.upsert_many(Collection.VOLATILITY_INDEX, [record]) == 1

    table, data, columns = client.inserts[0]
    assert table == "volatility_index"
    assert columns == TABLE_COLUMNS[Collection.VOLATILITY_INDEX]
    assert data[0][0] == date(2021, 1, 4)
    assert data[0][columns.index("sma10")] is None
