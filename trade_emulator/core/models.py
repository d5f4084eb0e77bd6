"""
시세/지표 데이터 모델 정의.

[ 역할 ]
    저장소(ClickHouse 등)에서 읽어온 레코드를 엔진이 다루는 불변 객체로 변환.
    엔진 입장에서는 모두 읽기 전용이다.

[ 주요 클래스 ]
    Bar               - 일봉 (OHLCV + 수정종가 + 배당 + 액면분할 계수)
    IndicatorSnapshot - 하루치 기술적 지표 (값이 없으면 None, 절대 0으로 채우지 않음)
    VolatilityPoint   - 변동성 지수(VIX) 일봉 + 이동평균
    IndicatorPair     - (전일, 당일) 지표 스냅샷 쌍

[ 호출하는 곳 ]
    - data/market_data.py::SnapshotAccessor가 레코드 → 모델 변환
    - strategies/*에서 시그널 판단에 사용
    - ingestion/에서 수집 결과를 레코드로 변환하여 저장
"""

from dataclasses import asdict, dataclass, fields
from datetime import date
from typing import Any, NamedTuple, Optional


def to_date(value: Any) -> date:
    """'YYYY-MM-DD' 문자열, datetime, date 모두 date로 통일."""
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    if hasattr(value, "date") and callable(value.date):
        return value.date()
    return value


def _optional_float(value: Any) -> Optional[float]:
    # ClickHouse Nullable, pandas NaN 모두 None으로
    if value is None:
        return None
    value = float(value)
    if value != value:
        return None
    return value


@dataclass(frozen=True)
class Bar:
    """단일 일봉. (symbol, date)당 하나."""
    symbol: str
    date: date
    open: float
    high: float
    low: float
    close: float
    adjusted_close: float
    volume: int = 0
    dividend_amount: float = 0.0
    split_coefficient: float = 1.0   # 1이면 분할 없음

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Bar":
        return cls(
            symbol=record["symbol"],
            date=to_date(record["date"]),
            open=float(record["open"]),
            high=float(record["high"]),
            low=float(record["low"]),
            close=float(record["close"]),
            adjusted_close=float(record["adjusted_close"]),
            volume=int(record.get("volume", 0)),
            dividend_amount=float(record.get("dividend_amount", 0.0)),
            split_coefficient=float(record.get("split_coefficient", 1.0)),
        )

    def to_record(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class IndicatorSnapshot:
    """하루치 기술적 지표.

    각 지표는 계산에 필요한 기간(warm-up)만큼 데이터가 쌓인 뒤에만 값이 있다.
    값이 없으면 None이며, 시그널 판단 시 '의견 없음'으로 취급된다.
    """
    symbol: str
    date: date
    sma15: Optional[float] = None
    sma20: Optional[float] = None
    sma50: Optional[float] = None
    sma100: Optional[float] = None
    sma200: Optional[float] = None
    ema5: Optional[float] = None
    ema8: Optional[float] = None
    ema9: Optional[float] = None
    ema12: Optional[float] = None
    ema13: Optional[float] = None
    ema20: Optional[float] = None
    ema21: Optional[float] = None
    ema26: Optional[float] = None
    ema34: Optional[float] = None
    ema50: Optional[float] = None
    ema100: Optional[float] = None
    ema200: Optional[float] = None
    macd: Optional[float] = None
    macd_hist: Optional[float] = None
    macd_signal: Optional[float] = None
    rsi2: Optional[float] = None
    rsi14: Optional[float] = None
    bband_lower: Optional[float] = None
    bband_upper: Optional[float] = None
    bband_middle: Optional[float] = None
    atr14: Optional[float] = None
    natr14: Optional[float] = None

    @classmethod
    def value_fields(cls) -> list[str]:
        """symbol/date를 제외한 지표 필드 이름 목록."""
        return [f.name for f in fields(cls) if f.name not in ("symbol", "date")]

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "IndicatorSnapshot":
        values = {
            name: _optional_float(record.get(name))
            for name in cls.value_fields()
        }
        return cls(symbol=record["symbol"], date=to_date(record["date"]), **values)

    def to_record(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class VolatilityPoint:
    """변동성 지수 일봉. 종목과 무관하게 날짜당 하나."""
    date: date
    open: float
    high: float
    low: float
    close: float
    sma10: Optional[float] = None
    sma15: Optional[float] = None
    sma20: Optional[float] = None
    sma50: Optional[float] = None
    sma100: Optional[float] = None
    sma200: Optional[float] = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "VolatilityPoint":
        return cls(
            date=to_date(record["date"]),
            open=float(record["open"]),
            high=float(record["high"]),
            low=float(record["low"]),
            close=float(record["close"]),
            sma10=_optional_float(record.get("sma10")),
            sma15=_optional_float(record.get("sma15")),
            sma20=_optional_float(record.get("sma20")),
            sma50=_optional_float(record.get("sma50")),
            sma100=_optional_float(record.get("sma100")),
            sma200=_optional_float(record.get("sma200")),
        )

    def to_record(self) -> dict[str, Any]:
        return asdict(self)


class IndicatorPair(NamedTuple):
    """indicator_pair_on_or_before()의 반환값. current가 가장 최근, before가 그 직전."""
    before: Optional[IndicatorSnapshot]
    current: Optional[IndicatorSnapshot]
