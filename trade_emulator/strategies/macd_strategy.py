"""
MACD 교차 전략 구현.

[ 역할 ]
    core/trading_strategy.py::TradingStrategy의 구현체 2종.
    MACDStrategy     - MACD 값이 0선을 상향 돌파하면 매수, 하향 돌파하면 매도
    MACDHistStrategy - MACD 히스토그램이 0선을 상향 돌파하면 매수, 하향 돌파하면 매도

[ 판단 조건 (전일 → 당일) ]
    MACD       매수: macd < 0 → macd > 0        매도: macd > 0 → macd < 0
    MACD-Hist  매수: hist < 0 → hist > 0        매도: hist > 0 → hist < 0

[ 주의 ]
    MACD-Hist도 히스토그램이 아니라 MACD 값의 존재 여부로 판단 가능 여부를 가른다.
    warm-up 시점이 달라지므로 macd_hist로 바꾸지 않는다.
"""

from typing import Any

from trade_emulator.core.models import Bar, IndicatorSnapshot
from trade_emulator.core.trading_strategy import (
    BuySignal,
    SellSignal,
    StrategyKind,
    TradingStrategy,
    VolatilityPair,
    field_pair,
)
from trade_emulator.strategies import register


def crossed_above(pair: tuple[float, float], level: float = 0.0) -> bool:
    """전일 level 미만 → 당일 level 초과."""
    before, current = pair
    return before < level and current > level


def crossed_below(pair: tuple[float, float], level: float = 0.0) -> bool:
    """전일 level 초과 → 당일 level 미만."""
    before, current = pair
    return before > level and current < level


@register(StrategyKind.MACD)
class MACDStrategy(TradingStrategy):
    """MACD 0선 교차 전략."""

    def __init__(self, params: dict[str, Any] | None = None):
        super().__init__(StrategyKind.MACD, params)

    def should_buy(
        self,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
        volatility: VolatilityPair,
    ) -> BuySignal:
        macd = field_pair(before, current, "macd")
        if macd is None:
            return None
        return crossed_above(macd)

    def should_sell(
        self,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
        volatility: VolatilityPair,
    ) -> SellSignal:
        macd = field_pair(before, current, "macd")
        if macd is None:
            return None
        return crossed_below(macd)


@register(StrategyKind.MACD_HIST)
class MACDHistStrategy(TradingStrategy):
    """MACD 히스토그램 0선 교차 전략."""

    def __init__(self, params: dict[str, Any] | None = None):
        super().__init__(StrategyKind.MACD_HIST, params)

    def _histogram(self, before: IndicatorSnapshot, current: IndicatorSnapshot):
        # macd 존재 여부로 판단 가능 여부 결정
        if field_pair(before, current, "macd") is None:
            return None
        return field_pair(before, current, "macd_hist")

    def should_buy(
        self,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
        volatility: VolatilityPair,
    ) -> BuySignal:
        hist = self._histogram(before, current)
        if hist is None:
            return None
        return crossed_above(hist)

    def should_sell(
        self,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
        volatility: VolatilityPair,
    ) -> SellSignal:
        hist = self._histogram(before, current)
        if hist is None:
            return None
        return crossed_below(hist)
