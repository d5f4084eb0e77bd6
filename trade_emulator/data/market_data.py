"""
시세/지표 스냅샷 조회 모듈.

[ 역할 ]
    DataStore를 감싸서 에뮬레이터가 필요로 하는 형태로 데이터를 제공.
    - 기준일 이하 가장 최근 일봉
    - 기준일 이하 가장 최근 지표 스냅샷 2개 (당일 + 직전)
    - 기준일 이하 가장 최근 변동성 지수 2개

[ 의존성 ]
    - core/data_store.py::DataStore (저장소 추상화)
    - core/models.py (레코드 → 모델 변환)

[ 호출하는 곳 ]
    - backtest/trade_step.py::TradeStep (종목별 일봉/지표)
    - backtest/engine.py::EmulationEngine (하루 1회 변동성 지수, 마지막 거래일)
"""

from datetime import date
from typing import Optional

from trade_emulator.core.data_store import Collection, DataStore
from trade_emulator.core.models import Bar, IndicatorPair, IndicatorSnapshot, VolatilityPoint


class SnapshotAccessor:
    """DataStore 위의 조회 전용 레이어.

    사용 예:
        accessor = SnapshotAccessor(store)
        bar = accessor.latest_bar_on_or_before("AAPL", date(2021, 1, 4))
        before, current = accessor.indicator_pair_on_or_before("AAPL", date(2021, 1, 4))
    """

    def __init__(self, store: DataStore):
        self.store = store

    def latest_bar_on_or_before(self, symbol: str, on_or_before: date) -> Optional[Bar]:
        """기준일 이하 가장 최근 일봉. 없으면 None."""
        rows = self.store.find_latest_on_or_before(
            Collection.DAILY_BARS, symbol, on_or_before, limit=1
        )
        if not rows:
            return None
        return Bar.from_record({**rows[0], "symbol": symbol})

    def indicator_pair_on_or_before(self, symbol: str, on_or_before: date) -> IndicatorPair:
        """기준일 이하 가장 최근 지표 스냅샷 2개.

        최신순으로 조회한 뒤 위치로 풀어낸다: 첫 번째가 current, 두 번째가 before.
        2개 미만이면 before는 None.
        """
        rows = self.store.find_latest_on_or_before(
            Collection.TECHNICAL_INDICATORS, symbol, on_or_before, limit=2
        )
        snapshots = [IndicatorSnapshot.from_record({**row, "symbol": symbol}) for row in rows]
        current = snapshots[0] if len(snapshots) >= 1 else None
        before = snapshots[1] if len(snapshots) >= 2 else None
        return IndicatorPair(before=before, current=current)

    def volatility_pair_on_or_before(self, on_or_before: date) -> tuple[VolatilityPoint, ...]:
        """기준일 이하 가장 최근 변동성 지수 (최신순, 최대 2개)."""
        rows = self.store.find_latest_on_or_before(
            Collection.VOLATILITY_INDEX, None, on_or_before, limit=2
        )
        return tuple(VolatilityPoint.from_record(row) for row in rows)
