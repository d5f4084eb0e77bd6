"""
시세/지표 저장소 추상 클래스 정의.

[ 역할 ]
    일봉, 기술적 지표, 변동성 지수를 보관하는 저장소 인터페이스.
    저장소 종류(ClickHouse, 메모리 등)에 독립적으로 엔진에 데이터 공급.

[ 구현체 ]
    - data/clickhouse_store.py::ClickHouseDataStore (운영용)
    - data/memory_store.py::InMemoryDataStore       (테스트/샘플 데이터용)

[ 호출하는 곳 ]
    - data/market_data.py::SnapshotAccessor가 find_latest_on_or_before()로 조회
    - scripts/update_data.py가 upsert()로 저장
"""

from abc import ABC, abstractmethod
from datetime import date
from enum import Enum
from typing import Any, Optional


class Collection(Enum):
    """저장소 컬렉션(테이블) 종류."""
    DAILY_BARS = "daily_bars"
    TECHNICAL_INDICATORS = "technical_indicators"
    VOLATILITY_INDEX = "volatility_index"

    @property
    def per_symbol(self) -> bool:
        """종목별로 구분되는 컬렉션인지 여부. 변동성 지수는 날짜만 키로 쓴다."""
        return self is not Collection.VOLATILITY_INDEX


class DataStore(ABC):
    """저장소 추상 클래스.

    레코드는 dict이며 키는 (symbol, date) 또는 (date,)이다.
    같은 키로 다시 저장하면 기존 레코드를 덮어쓴다 (upsert).
    """

    @abstractmethod
    def find_latest_on_or_before(
        self,
        collection: Collection,
        symbol: Optional[str],
        on_or_before: date,
        limit: int = 1,
    ) -> list[dict[str, Any]]:
        """on_or_before 이하 날짜의 레코드를 최신순으로 최대 limit개 조회.

        Args:
            collection: 조회할 컬렉션
            symbol: 종목 코드 (변동성 지수는 None)
            on_or_before: 기준일 (포함)
            limit: 최대 레코드 수

        Returns:
            날짜 내림차순 레코드 리스트
        """
        ...

    @abstractmethod
    def upsert(
        self,
        collection: Collection,
        key: dict[str, Any],
        record: dict[str, Any],
    ) -> None:
        """레코드 저장. 같은 키가 있으면 덮어쓴다."""
        ...

    def upsert_many(self, collection: Collection, records: list[dict[str, Any]]) -> int:
        """여러 레코드 저장. 구현체가 배치 삽입을 지원하면 오버라이드한다."""
        for record in records:
            self.upsert(collection, self.key_of(collection, record), record)
        return len(records)

    @staticmethod
    def key_of(collection: Collection, record: dict[str, Any]) -> dict[str, Any]:
        """레코드에서 키 추출."""
        if collection.per_symbol:
            return {"symbol": record["symbol"], "date": record["date"]}
        return {"date": record["date"]}

    def close(self) -> None:
        """연결 종료. 필요한 구현체만 오버라이드."""
