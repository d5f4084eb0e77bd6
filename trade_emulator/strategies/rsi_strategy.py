"""
RSI 평균회귀 전략 구현.

[ 판단 조건 (전일 → 당일) ]
    매수: RSI 상승 전환 + 전일 RSI < buy_below (기본 33)
    매도: RSI 하락 전환 + 전일 RSI > sell_above (기본 70)

[ 파라미터 (config.yaml의 strategy.params) ]
    rsi_field:  사용할 RSI 지표 필드 ("rsi14" 또는 "rsi2")
    buy_below:  매수 기준
    sell_above: 매도 기준

rsi_turned_down()은 strategies/vix_stretch_strategy.py에서도 사용.
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


def rsi_turned_up(
    before: IndicatorSnapshot,
    current: IndicatorSnapshot,
    threshold: float,
    rsi_field: str = "rsi14",
) -> BuySignal:
    """RSI가 threshold 아래에서 상승 전환했는지. RSI가 없으면 None."""
    rsi = field_pair(before, current, rsi_field)
    if rsi is None:
        return None
    rsi_before, rsi_current = rsi
    return rsi_before < rsi_current and rsi_before < threshold


def rsi_turned_down(
    before: IndicatorSnapshot,
    current: IndicatorSnapshot,
    threshold: float,
    rsi_field: str = "rsi14",
) -> SellSignal:
    """RSI가 threshold 위에서 하락 전환했는지. RSI가 없으면 None."""
    rsi = field_pair(before, current, rsi_field)
    if rsi is None:
        return None
    rsi_before, rsi_current = rsi
    return rsi_before > rsi_current and rsi_before > threshold


@register(StrategyKind.RSI)
class RSIStrategy(TradingStrategy):
    """RSI 과매도 반등 매수 / 과매수 꺾임 매도."""

    DEFAULT_PARAMS = {
        "rsi_field": "rsi14",
        "buy_below": 33.0,
        "sell_above": 70.0,
    }

    def __init__(self, params: dict[str, Any] | None = None):
        super().__init__(StrategyKind.RSI, params)

    def should_buy(
        self,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
        volatility: VolatilityPair,
    ) -> BuySignal:
        return rsi_turned_up(
            before, current, float(self.params["buy_below"]), self.params["rsi_field"]
        )

    def should_sell(
        self,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
        volatility: VolatilityPair,
    ) -> SellSignal:
        return rsi_turned_down(
            before, current, float(self.params["sell_above"]), self.params["rsi_field"]
        )
