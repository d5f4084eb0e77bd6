"""
매매 전략(시그널 평가기) 추상 클래스 정의.

[ 역할 ]
    전일/당일 지표 스냅샷, 당일 일봉, 변동성 지수 쌍을 받아
    매수/매도 시그널을 판단하는 인터페이스를 정의.
    모든 판단은 순수 함수 - 포트폴리오나 내부 상태를 바꾸지 않는다.

[ 시그널 3상태 ]
    None  → 의견 없음 (필요한 지표가 아직 없음)
    False → 지표는 있으나 시그널 없음
    True  → 시그널 발생
    매도는 True 대신 가격(float)을 반환할 수 있다 → 해당 가격으로 매도

[ 구현체 ]
    - strategies/macd_strategy.py       (MACD, MACD-Hist)
    - strategies/bbands_strategy.py     (BB)
    - strategies/rsi_strategy.py        (RSI)
    - strategies/ema_cloud_strategy.py  (EMA2)
    - strategies/vix_stretch_strategy.py (VIXss)

[ 호출하는 곳 ]
    - backtest/trade_step.py::TradeStep.run()에서 매 (종목, 날짜)마다
      should_buy() / should_sell() 호출
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional, Sequence, Union

from trade_emulator.core.models import Bar, IndicatorSnapshot, VolatilityPoint

BuySignal = Optional[bool]
SellSignal = Optional[Union[bool, float]]
VolatilityPair = Sequence[VolatilityPoint]


class StrategyKind(Enum):
    """사용 가능한 전략 종류 (닫힌 집합). 값은 CLI에서 쓰는 이름."""
    MACD = "MACD"
    MACD_HIST = "MACD-Hist"
    BB = "BB"
    RSI = "RSI"
    EMA2 = "EMA2"
    VIXSS = "VIXss"


def field_pair(
    before: IndicatorSnapshot,
    current: IndicatorSnapshot,
    name: str,
) -> Optional[tuple[float, float]]:
    """두 스냅샷 모두 name 지표가 있으면 (전일값, 당일값), 하나라도 없으면 None."""
    before_value = getattr(before, name)
    current_value = getattr(current, name)
    if before_value is None or current_value is None:
        return None
    return before_value, current_value


class TradingStrategy(ABC):
    """매매 전략 추상 클래스.

    새 전략을 만들려면 이 클래스를 상속받아 should_buy/should_sell을 구현하고
    strategies/__init__.py의 @register(StrategyKind.XXX)로 등록한다.
    임계값은 DEFAULT_PARAMS에 두고 config.yaml의 strategy.params로 오버라이드한다.
    """

    DEFAULT_PARAMS: dict[str, Any] = {}

    def __init__(self, kind: StrategyKind, params: dict[str, Any] | None = None):
        self.kind = kind
        self.params = {**self.DEFAULT_PARAMS, **(params or {})}

    @property
    def name(self) -> str:
        return self.kind.value

    @abstractmethod
    def should_buy(
        self,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
        volatility: VolatilityPair,
    ) -> BuySignal:
        """매수 시그널 판단.

        Args:
            before: 전일 지표
            current: 당일 지표
            bar: 당일 일봉
            volatility: 변동성 지수 (최신순, 최대 2개)

        Returns:
            True/False, 또는 판단 불가 시 None
        """
        ...

    @abstractmethod
    def should_sell(
        self,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
        volatility: VolatilityPair,
    ) -> SellSignal:
        """매도 시그널 판단.

        Returns:
            True/False, 매도 가격(float), 또는 판단 불가 시 None
        """
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, params={self.params!r})"
