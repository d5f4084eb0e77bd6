"""
VIX 스트레치 전략 구현.

[ 판단 조건 ]
    매수: 수정종가 > 당일 EMA200 이고,
          최근 2일 모두 VIX 종가 >= VIX SMA10 × stretch (기본 1.05)
    매도: RSI 하락 전환 + 전일 RSI > sell_above (기본 65)

    VIX가 2일치 미만이거나 SMA10이 없으면 판단하지 않는다.

[ 참고 ]
    http://www.traderslaboratory.com/forums/topic/6931-combining-rsi-and-vix-into-a-winning-system/
"""

from typing import Any

from trade_emulator.core.models import Bar, IndicatorSnapshot
from trade_emulator.core.trading_strategy import (
    BuySignal,
    SellSignal,
    StrategyKind,
    TradingStrategy,
    VolatilityPair,
)
from trade_emulator.strategies import register
from trade_emulator.strategies.rsi_strategy import rsi_turned_down


@register(StrategyKind.VIXSS)
class VIXStretchStrategy(TradingStrategy):
    """장기 상승 추세 종목을 VIX 급등 구간에 매수."""

    DEFAULT_PARAMS = {
        "stretch": 1.05,
        "sell_above": 65.0,
        "rsi_field": "rsi14",
    }

    def __init__(self, params: dict[str, Any] | None = None):
        super().__init__(StrategyKind.VIXSS, params)

    def should_buy(
        self,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
        volatility: VolatilityPair,
    ) -> BuySignal:
        if current.ema200 is None:
            return None
        if not bar.adjusted_close > current.ema200:
            return False

        points = list(volatility)[:2]
        if len(points) < 2 or any(point.sma10 is None for point in points):
            return None
        stretch = float(self.params["stretch"])
        return all(point.close >= point.sma10 * stretch for point in points)

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
