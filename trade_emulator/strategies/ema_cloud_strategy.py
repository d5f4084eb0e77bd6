"""
EMA 클라우드(5/13) 전략 구현.

[ 판단 조건 ]
    매수: 당일 EMA13 < EMA5, EMA5 상승 중, 수정종가 > 당일 EMA5
    매도 (순서대로 확인, 먼저 걸린 쪽의 가격으로 매도):
        1. 당일 저가 < 전일 EMA13  → 전일 EMA13 가격에 매도 (장중 이탈)
        2. EMA13 하락 중 + 수정종가 < 당일 EMA13 → 수정종가에 매도

    두 스냅샷 모두 EMA13이 있어야 판단한다.
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


@register(StrategyKind.EMA2)
class EMACloudStrategy(TradingStrategy):
    """EMA 5/13 클라우드 전략. 매도 시그널은 매도 가격으로 반환."""

    DEFAULT_PARAMS = {
        "fast_field": "ema5",
        "slow_field": "ema13",
    }

    def __init__(self, params: dict[str, Any] | None = None):
        super().__init__(StrategyKind.EMA2, params)

    def should_buy(
        self,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
        volatility: VolatilityPair,
    ) -> BuySignal:
        slow = field_pair(before, current, self.params["slow_field"])
        fast = field_pair(before, current, self.params["fast_field"])
        if slow is None or fast is None:
            return None
        _, slow_current = slow
        fast_before, fast_current = fast

        if slow_current < fast_current and fast_before < fast_current:
            return bar.adjusted_close > fast_current
        return False

    def should_sell(
        self,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
        volatility: VolatilityPair,
    ) -> SellSignal:
        slow = field_pair(before, current, self.params["slow_field"])
        if slow is None:
            return None
        slow_before, slow_current = slow

        # 장중 전일 EMA13 이탈 → 그 가격에 익절/손절
        if bar.low < slow_before:
            return slow_before

        if slow_before > slow_current and bar.adjusted_close < slow_current:
            return bar.adjusted_close
        return False
