"""
ClickHouse 기반 DataStore 구현.

[ 역할 ]
    ClickHouse에 저장된 일봉/지표/변동성 지수를 조회·저장.
    core/data_store.py::DataStore 인터페이스를 구현하여 엔진과 호환.

[ 재시도 정책 ]
    네트워크/과부하 등 일시적 오류(OperationalError)는 지수 백오프 + 지터로 재시도.
    그 외 오류(쿼리 오류 등)는 즉시 전파.

[ 의존성 ]
    - core/data_store.py::DataStore (추상 클래스)
    - ingestion/clickhouse_schema.py (ClickHouse 연결 및 스키마)

[ 호출하는 곳 ]
    - run_emulation.py (--source clickhouse, 기본값)
    - scripts/update_data.py
"""

import logging
import random
import time
from datetime import date
from typing import Any, Callable, Optional, TypeVar

from clickhouse_connect.driver import Client
from clickhouse_connect.driver.exceptions import OperationalError

from trade_emulator.core.data_store import Collection, DataStore
from trade_emulator.core.models import to_date
from trade_emulator.ingestion.clickhouse_schema import TABLE_COLUMNS, get_client

logger = logging.getLogger("trade_emulator.data")

T = TypeVar("T")


class ClickHouseDataStore(DataStore):
    """ClickHouse 저장소.

    사용 예:
        store = ClickHouseDataStore('localhost', 8123, 'default', password='password')
        rows = store.find_latest_on_or_before(Collection.DAILY_BARS, 'AAPL', date(2021, 1, 4), 2)
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8123,
        database: str = "default",
        user: str = "default",
        password: str = "password",
        max_retries: int = 5,
        backoff_base: float = 0.5,
        backoff_cap: float = 10.0,
        client: Optional[Client] = None,
    ):
        """
        Args:
            host: ClickHouse 호스트
            port: HTTP 포트 (기본값: 8123)
            database: 데이터베이스 이름
            user: 사용자 이름
            password: 비밀번호
            max_retries: 일시적 오류 시 최대 재시도 횟수
            backoff_base: 백오프 기본 시간 (초)
            backoff_cap: 백오프 최대 시간 (초)
            client: 이미 생성된 클라이언트 (테스트용)
        """
        self.client: Client = client or get_client(host, port, database, user, password)
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap

    def _with_retry(self, action: Callable[[], T]) -> T:
        """일시적 오류 시 지수 백오프 + 지터로 재시도."""
        attempt = 1
        while True:
            try:
                return action()
            except OperationalError as e:
                if attempt > self.max_retries:
                    logger.error(f"ClickHouse: 재시도 한도 초과 ({self.max_retries}회): {e}")
                    raise
                temp = min(self.backoff_cap, self.backoff_base * 2 ** attempt)
                sleep = temp / 2 + random.uniform(0, temp / 2)
                logger.debug(f"ClickHouse: {sleep:.2f}초 대기 (시도 {attempt}, temp {temp:.2f})")
                time.sleep(sleep)
                attempt += 1

    def find_latest_on_or_before(
        self,
        collection: Collection,
        symbol: Optional[str],
        on_or_before: date,
        limit: int = 1,
    ) -> list[dict[str, Any]]:
        """on_or_before 이하 날짜의 레코드를 최신순으로 최대 limit개 조회."""
        columns = ", ".join(TABLE_COLUMNS[collection])
        where = "date <= %(date)s"
        parameters: dict[str, Any] = {"date": on_or_before}
        if collection.per_symbol:
            where = "symbol = %(symbol)s AND " + where
            parameters["symbol"] = symbol

        query = f"""
            SELECT {columns}
            FROM {collection.value} FINAL
            WHERE {where}
            ORDER BY date DESC
            LIMIT {int(limit)}
        """

        result = self._with_retry(lambda: self.client.query(query, parameters=parameters))
        return [dict(zip(result.column_names, row)) for row in result.result_rows]

    def upsert(
        self,
        collection: Collection,
        key: dict[str, Any],
        record: dict[str, Any],
    ) -> None:
        """레코드 저장. ReplacingMergeTree이므로 삽입이 곧 덮어쓰기."""
        self.upsert_many(collection, [{**record, **key}])

    def upsert_many(self, collection: Collection, records: list[dict[str, Any]]) -> int:
        """배치 삽입."""
        if not records:
            return 0
        columns = TABLE_COLUMNS[collection]
        data = [
            [to_date(record["date"]) if column == "date" else record.get(column) for column in columns]
            for record in records
        ]
        self._with_retry(lambda: self.client.insert(collection.value, data, column_names=columns))
        logger.info(f"{collection.value}: {len(data)}건 저장")
        return len(data)

    def get_symbols(self) -> list[str]:
        """일봉이 저장된 종목 목록 (알파벳 순)."""
        query = "SELECT DISTINCT symbol FROM daily_bars ORDER BY symbol"
        result = self._with_retry(lambda: self.client.query(query))
        return [row[0] for row in result.result_rows]

    def close(self) -> None:
        """ClickHouse 연결 종료."""
        if hasattr(self.client, "close"):
            self.client.close()
