"""
종목·일자 단위 매매 판단 모듈.

[ 역할 ]
    (종목, 날짜) 하나에 대해 일봉/지표를 조회하고 전략 시그널에 따라 Portfolio를 변경.
    EmulationEngine이 하루에 종목 수만큼 동시에 호출한다.

[ 처리 순서 ]
    0. 당일 일봉 또는 당일 지표가 없으면 건너뜀 (데이터 공백, 오류 아님)
    1. 참고용 로그: RSI 30/70 이탈, 골든/데드 크로스, SMA50 첫 하향 이탈
    2. 강제 매도: 손절가/목표가 도달, N일 연속 음봉
    3. 전략 시그널: 매수만 → 매수, 매도만 → 매도, 둘 다 → 에러 로그 후 무시
    4. 액면분할 반영
    5. 수정종가를 최근 저가 윈도우에 추가 (손절가 계산용)

[ 의존성 ]
    - data/market_data.py::SnapshotAccessor (일봉/지표 조회)
    - data/portfolio.py::Portfolio (매수/매도/분할조정)
    - core/trading_strategy.py::TradingStrategy (시그널)

[ 호출하는 곳 ]
    - backtest/engine.py::EmulationEngine._run_day()
"""

import logging
from collections import deque
from datetime import date
from typing import Optional

from trade_emulator.core.exceptions import DateMisalignmentError
from trade_emulator.core.models import Bar, IndicatorSnapshot
from trade_emulator.core.trading_strategy import TradingStrategy, VolatilityPair
from trade_emulator.data.market_data import SnapshotAccessor
from trade_emulator.data.portfolio import Portfolio

logger = logging.getLogger("trade_emulator.backtest")

# run()의 반환값
SKIPPED = "skipped"
NO_ACTION = "no_action"
BOUGHT = "bought"
SOLD = "sold"
FORCED_SOLD = "forced_sold"
REFUSED = "refused"
AMBIGUOUS = "ambiguous"


class RollingLowWindow:
    """최근 수정종가 FIFO 윈도우. 가장 오래된 값부터 밀려난다."""

    def __init__(self, size: int = 20):
        if size <= 0:
            raise ValueError(f"윈도우 크기는 1 이상이어야 함: {size}")
        self._values: deque[float] = deque(maxlen=size)

    @property
    def size(self) -> int:
        return self._values.maxlen

    def push(self, value: float) -> None:
        self._values.append(value)

    def swing_low(self) -> Optional[float]:
        """윈도우 최저값. 비어 있으면 None."""
        if not self._values:
            return None
        return min(self._values)

    def values(self) -> list[float]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)


class TradeStep:
    """(종목, 날짜) 단위 매매 판단기.

    종목별 상태(저가 윈도우, SMA50 하향 여부)를 보관한다.
    같은 종목에 대해 동시에 두 번 호출되지 않는다는 전제 (엔진이 하루 단위 배리어로 보장).
    """

    def __init__(
        self,
        accessor: SnapshotAccessor,
        portfolio: Portfolio,
        strategy: TradingStrategy,
        stop_loss_enabled: bool = False,
        profit_target_factor: float = 1.5,
        red_days_exit: int = 0,
        low_window_size: int = 20,
    ):
        self.accessor = accessor
        self.portfolio = portfolio
        self.strategy = strategy
        self.stop_loss_enabled = stop_loss_enabled
        self.profit_target_factor = profit_target_factor
        self.red_days_exit = red_days_exit
        self.low_window_size = low_window_size

        self.low_windows: dict[str, RollingLowWindow] = {}
        self.closed_below_sma50: dict[str, bool] = {}

    def prepare(self, symbols: list[str]) -> None:
        """종목별 상태를 미리 생성. 동시 실행 전에 한 번 호출."""
        for symbol in symbols:
            self.low_windows.setdefault(symbol, RollingLowWindow(self.low_window_size))
            self.closed_below_sma50.setdefault(symbol, False)
        self.portfolio.open_positions(symbols)

    def run(self, symbol: str, trade_date: date, volatility: VolatilityPair) -> str:
        """하루치 매매 판단 및 실행.

        Returns:
            SKIPPED / NO_ACTION / BOUGHT / SOLD / FORCED_SOLD / REFUSED / AMBIGUOUS

        Raises:
            DateMisalignmentError: 전일 지표 날짜가 당일 지표 날짜보다 늦거나 같음
        """
        if symbol not in self.low_windows:
            self.prepare([symbol])

        bar = self.accessor.latest_bar_on_or_before(symbol, trade_date)
        if bar is None or bar.date != trade_date:
            logger.debug(f"{symbol}: {trade_date} 일봉 없음, 건너뜀")
            return SKIPPED

        before, current = self.accessor.indicator_pair_on_or_before(symbol, trade_date)
        if before is None or current is None:
            logger.debug(f"{symbol}: {trade_date} 지표 2일치 미만, 건너뜀")
            return SKIPPED

        if current.date != bar.date:
            logger.debug(f"{symbol}: {trade_date} 지표 없음 (최신 지표 {current.date}), 건너뜀")
            return SKIPPED
        if before.date >= current.date:
            raise DateMisalignmentError(
                symbol, f"전일 지표 날짜 {before.date} >= 당일 지표 날짜 {current.date}"
            )

        self._log_market_events(symbol, trade_date, before, current, bar)

        forced_price = self._forced_exit_price(symbol, trade_date, bar)
        if forced_price is not None:
            executed = self.portfolio.sell(trade_date, symbol, bar, force=True, sell_price=forced_price)
            result = FORCED_SOLD if executed else REFUSED
        else:
            result = self._apply_signals(symbol, trade_date, before, current, bar, volatility)

        if bar.split_coefficient != 1:
            logger.info(f"{symbol}: 액면분할 {bar.split_coefficient}")
            logger.info(f"{symbol}: 최근 저가 {self.low_windows[symbol].values()}")
            self.portfolio.split_adjust(symbol, bar.split_coefficient)

        # 저가 대신 수정종가 사용 (저가는 분할 조정이 안 되어 있음)
        self.low_windows[symbol].push(bar.adjusted_close)
        return result

    def _log_market_events(
        self,
        symbol: str,
        trade_date: date,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
    ) -> None:
        """참고용 이벤트 로그. 상태는 SMA50 하향 여부만 갱신."""
        if before.rsi14 is not None and current.rsi14 is not None:
            if before.rsi14 < 30.0 <= current.rsi14:
                logger.info(f"RSI: {symbol} 과매도 이탈 (상승) {trade_date}")
            elif before.rsi14 > 70.0 >= current.rsi14 and self.portfolio.get_position(symbol).is_open:
                logger.info(f"RSI: {symbol} 과매수 이탈 (하락) {trade_date}")

        if None not in (before.sma50, before.sma200, current.sma50, current.sma200):
            if before.sma50 < before.sma200 and current.sma50 > current.sma200:
                logger.info(f"골든크로스: {symbol} {trade_date}")
            elif before.sma50 > before.sma200 and current.sma50 < current.sma200:
                logger.info(f"데드크로스: {symbol} {trade_date}")

        below = current.sma50 is not None and bar.adjusted_close < current.sma50
        if below and not self.closed_below_sma50[symbol]:
            # 연속 하향 구간의 첫날만
            logger.info(f"SMA50: {symbol} 종가 하향 이탈 {trade_date}")
        self.closed_below_sma50[symbol] = below

    def _forced_exit_price(self, symbol: str, trade_date: date, bar: Bar) -> Optional[float]:
        """강제 매도가. 해당 없으면 None."""
        position = self.portfolio.get_position(symbol)
        if not position.is_open:
            return None

        if self.stop_loss_enabled:
            if position.stop_loss is not None and bar.low < position.stop_loss:
                logger.info(f"손절: {symbol} {trade_date} @ {position.stop_loss:,.2f}")
                return position.stop_loss
            if position.profit_target is not None and bar.adjusted_close > position.profit_target:
                logger.info(f"목표가 도달: {symbol} {trade_date} @ {position.profit_target:,.2f}")
                return position.profit_target

        position.days_since_buy += 1
        if bar.adjusted_close < bar.open:
            position.red_days_since_buy += 1
        if (
            self.red_days_exit > 0
            and position.days_since_buy == self.red_days_exit
            and position.red_days_since_buy == self.red_days_exit
        ):
            logger.info(f"{self.red_days_exit}일 연속 음봉: {symbol} {trade_date} 매도")
            return bar.adjusted_close
        return None

    def _apply_signals(
        self,
        symbol: str,
        trade_date: date,
        before: IndicatorSnapshot,
        current: IndicatorSnapshot,
        bar: Bar,
        volatility: VolatilityPair,
    ) -> str:
        buy_it = self.strategy.should_buy(before, current, bar, volatility)
        sell_it = self.strategy.should_sell(before, current, bar, volatility)
        wants_buy = bool(buy_it)
        # 매도가 0.0은 시그널 없음
        wants_sell = sell_it is not None and sell_it is not False and sell_it != 0

        if wants_buy and wants_sell:
            logger.error(
                f"{trade_date}: {symbol} 매수/매도 시그널 동시 발생 "
                f"(buy={buy_it}, sell={sell_it}, 수정종가={bar.adjusted_close}, 저가={bar.low})"
            )
            return AMBIGUOUS

        if wants_buy:
            logger.info(f"{self.strategy.name}: {symbol} 매수 시그널 {trade_date}")
            if not self.portfolio.buy(trade_date, symbol, bar):
                return REFUSED
            self._reset_after_buy(symbol)
            return BOUGHT

        if wants_sell:
            if self.portfolio.get_position(symbol).is_open:
                logger.info(f"{self.strategy.name}: {symbol} 매도 시그널 {trade_date}")
            # 시그널이 가격을 돌려줘도 체결은 수정종가
            if self.portfolio.sell(trade_date, symbol, bar, force=False):
                return SOLD
            return REFUSED

        return NO_ACTION

    def _reset_after_buy(self, symbol: str) -> None:
        """매수 체결 후 카운터 초기화 및 손절가/목표가 갱신."""
        position = self.portfolio.get_position(symbol)
        position.days_since_buy = 0
        position.red_days_since_buy = 0

        new_stop_loss = self.low_windows[symbol].swing_low()
        logger.info(f"{symbol}: 현재 손절가 {position.stop_loss}, 신규 후보 {new_stop_loss}")
        if new_stop_loss is None:
            return
        if position.stop_loss is None or new_stop_loss < position.stop_loss:
            position.stop_loss = new_stop_loss
            position.profit_target = self.profit_target_factor * new_stop_loss
            logger.info(f"{symbol}: 손절가 {position.stop_loss:,.2f}, 목표가 {position.profit_target:,.2f}")
