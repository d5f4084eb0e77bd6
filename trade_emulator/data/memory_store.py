"""
메모리 기반 DataStore 구현.

[ 역할 ]
    core/data_store.py::DataStore의 구현체.
    ClickHouse 없이 테스트/샘플 데이터로 에뮬레이터를 돌리기 위한 저장소.

[ 호출하는 곳 ]
    - run_emulation.py (--source sample 옵션 사용 시)
    - tests/ 전반
"""

import threading
from collections import defaultdict
from datetime import date
from typing import Any, Optional

from trade_emulator.core.data_store import Collection, DataStore
from trade_emulator.core.models import to_date


class InMemoryDataStore(DataStore):
    """dict 기반 메모리 저장소.

    사용법:
        store = InMemoryDataStore()
        store.upsert(Collection.DAILY_BARS, {"symbol": "AAPL", "date": d}, record)
        rows = store.find_latest_on_or_before(Collection.DAILY_BARS, "AAPL", d, limit=2)
    """

    def __init__(self):
        # collection → symbol(또는 None) → date → record
        self._data: dict[Collection, dict[Optional[str], dict[date, dict[str, Any]]]] = defaultdict(
            lambda: defaultdict(dict)
        )
        self._lock = threading.Lock()

    def find_latest_on_or_before(
        self,
        collection: Collection,
        symbol: Optional[str],
        on_or_before: date,
        limit: int = 1,
    ) -> list[dict[str, Any]]:
        partition = symbol if collection.per_symbol else None
        with self._lock:
            rows = self._data[collection].get(partition, {})
            dates = sorted((d for d in rows if d <= on_or_before), reverse=True)[:limit]
            return [dict(rows[d]) for d in dates]

    def upsert(
        self,
        collection: Collection,
        key: dict[str, Any],
        record: dict[str, Any],
    ) -> None:
        partition = key["symbol"] if collection.per_symbol else None
        record_date = to_date(key["date"])
        with self._lock:
            self._data[collection][partition][record_date] = {**record, "date": record_date}

    def symbols(self) -> list[str]:
        """일봉이 저장된 종목 목록."""
        with self._lock:
            return sorted(s for s in self._data[Collection.DAILY_BARS] if s is not None)

    def record_count(self, collection: Collection, symbol: Optional[str] = None) -> int:
        """레코드 수 조회."""
        with self._lock:
            if symbol is not None:
                return len(self._data[collection].get(symbol, {}))
            return sum(len(rows) for rows in self._data[collection].values())
