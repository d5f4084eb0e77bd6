"""
볼린저 밴드 수축/확장 전략 구현.

[ 판단 조건 (전일 → 당일) ]
    매수: 밴드 수축 (상단 하락 + 하단 상승) 중 수정종가가 당일 하단 아래
    매도: 밴드 확장 (상단 상승 + 하단 하락) 중 수정종가가 전일 상단과 당일 상단 사이

    두 스냅샷 모두 상단 밴드가 있어야 판단한다.
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


@register(StrategyKind.BB)
class BollingerBandStrategy(TradingStrategy):
    """볼린저 밴드 전략."""

    def __init__(self, params: dict[str, Any] | None = None):
        super().__init__(StrategyKind.BB, params)

    @staticmethod
    def _bands(before: IndicatorSnapshot, current: IndicatorSnapshot):
        upper = field_pair(before, current, "bband_upper")
        if upper is None:
            return None
        lower = field_pair(before, current, "bband_lower")
        if lower is None:
            return None
        return upper, lower

    def should_buy(
        self,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
        volatility: VolatilityPair,
    ) -> BuySignal:
        bands = self._bands(before, current)
        if bands is None:
            return None
        (upper_before, upper_current), (lower_before, lower_current) = bands

        squeezing = upper_before > upper_current and lower_before < lower_current
        if not squeezing:
            return False
        return bar.adjusted_close < lower_current

    def should_sell(
        self,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
        volatility: VolatilityPair,
    ) -> SellSignal:
        bands = self._bands(before, current)
        if bands is None:
            return None
        (upper_before, upper_current), (lower_before, lower_current) = bands

        widening = upper_before < upper_current and lower_before > lower_current
        if not widening:
            return False
        return upper_before < bar.adjusted_close < upper_current
