"""
에뮬레이션 엔진 모듈.

[ 역할 ]
    시작일부터 마지막 거래일까지 하루씩 진행하며 모든 종목에 TradeStep을 적용.
    시스템의 핵심 실행 루프를 담당.

[ 실행 흐름 ]
    run() 호출 시:
        1. 첫 번째 종목의 to_date 이하 최신 일봉 날짜 = 마지막 거래일
        2. 시작일 ~ 마지막 거래일의 각 날짜에 대해 (토/일 제외)
           → 변동성 지수 2일치를 한 번만 조회
           → 종목별 TradeStep.run()을 스레드풀에서 동시에 실행
           → 그날의 모든 작업이 끝날 때까지 대기 (다음 날로 넘어가지 않음)
        3. 보유 종목을 마지막 거래일 수정종가로 평가 (mark_to_market)
        4. report.build_report()로 리포트 생성

[ 동시성 ]
    ThreadPoolExecutor(max_workers)로 하루치 종목을 실행하고 wait()로 배리어.
    종목 하나의 예외는 잡아서 로그만 남기고 배치는 계속 진행한다.
    max_workers=1이면 종목 순서대로 실행되어 결과가 결정적이다.

[ 의존성 ]
    - backtest/trade_step.py::TradeStep (종목·일자 단위 판단)
    - data/market_data.py::SnapshotAccessor (일봉/변동성 조회)
    - data/portfolio.py::Portfolio (원장)
    - backtest/report.py::build_report() (리포트)

[ 호출하는 곳 ]
    - run_emulation.py (진입점)에서 생성 및 실행
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import date, timedelta
from typing import Optional

from trade_emulator.backtest.report import EmulationReport, build_report
from trade_emulator.backtest.trade_step import TradeStep
from trade_emulator.core.trading_strategy import TradingStrategy, VolatilityPair
from trade_emulator.data.market_data import SnapshotAccessor
from trade_emulator.data.portfolio import Portfolio
from trade_emulator.utils.config import EmulationConfig

logger = logging.getLogger("trade_emulator.backtest")


def trading_days(from_date: date, to_date: date):
    """from_date ~ to_date(포함) 중 월~금 날짜를 순서대로 생성."""
    current = from_date
    while current <= to_date:
        if current.weekday() < 5:
            yield current
        current += timedelta(days=1)


class EmulationEngine:
    """에뮬레이션 엔진. run()으로 시뮬레이션 실행.

    사용 예:
        engine = EmulationEngine(SnapshotAccessor(store), strategy, config.emulation)
        report = engine.run(["AAPL", "MSFT"], date(2021, 1, 4), date(2021, 3, 31))
        print(report.summary())
    """

    def __init__(
        self,
        accessor: SnapshotAccessor,
        strategy: TradingStrategy,
        config: Optional[EmulationConfig] = None,
    ):
        self.accessor = accessor
        self.strategy = strategy
        self.config = config or EmulationConfig()

        # run() 실행 후 채워지는 결과
        self.portfolio: Portfolio | None = None
        self.trade_step: TradeStep | None = None
        self.days_run: list[date] = []
        self.failures: list[tuple[str, date, Exception]] = []
        self.report: EmulationReport | None = None

    def resolve_last_trading_date(self, symbols: list[str], to_date: date) -> Optional[date]:
        """첫 번째 종목의 to_date 이하 최신 일봉 날짜."""
        if not symbols:
            return None
        bar = self.accessor.latest_bar_on_or_before(symbols[0], to_date)
        return bar.date if bar is not None else None

    def run(self, symbols: list[str], from_date: date, to_date: date) -> EmulationReport:
        """에뮬레이션 실행.

        Args:
            symbols: 종목 코드 리스트 (첫 번째 종목이 마지막 거래일 기준)
            from_date: 시작일
            to_date: 종료일 (이 날짜 이하 최신 거래일까지 진행)

        Returns:
            EmulationReport
        """
        self.portfolio = Portfolio.from_config(self.config)
        self.trade_step = TradeStep(
            accessor=self.accessor,
            portfolio=self.portfolio,
            strategy=self.strategy,
            stop_loss_enabled=self.config.stop_loss_enabled,
            profit_target_factor=self.config.profit_target_factor,
            red_days_exit=self.config.red_days_exit,
            low_window_size=self.config.low_window_size,
        )
        self.trade_step.prepare(symbols)
        self.days_run = []
        self.failures = []

        last_trading_date = self.resolve_last_trading_date(symbols, to_date)
        if last_trading_date is None:
            logger.warning(f"{to_date} 이하 거래일이 없습니다.")
            self.report = build_report(self.portfolio, {}, self.strategy.name, from_date, None)
            return self.report

        logger.info(f"마지막 거래일: {last_trading_date}")
        logger.info(f"에뮬레이션 시작: {self.strategy.name}, {len(symbols)}종목, {from_date} ~ {last_trading_date}")

        max_workers = max(1, self.config.max_workers)
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="trade") as executor:
            for day in trading_days(from_date, last_trading_date):
                self._run_day(executor, symbols, day)

        last_prices = self._mark_to_market(last_trading_date)
        self.report = build_report(
            self.portfolio, last_prices, self.strategy.name, from_date, last_trading_date
        )
        logger.info(f"에뮬레이션 완료. 현금+평가액: {self.report.total_value:,.2f}")
        return self.report

    def _run_day(self, executor: ThreadPoolExecutor, symbols: list[str], day: date) -> None:
        """하루치 종목 동시 실행. 모든 종목이 끝나야 반환한다."""
        try:
            volatility = self.accessor.volatility_pair_on_or_before(day)
        except Exception as e:
            # 변동성 지수 없이 진행 (VIXss는 판단 보류)
            logger.error(f"{day}: 변동성 지수 조회 실패: {e}", exc_info=True)
            volatility = ()
        logger.info("")

        futures = {
            executor.submit(self._run_symbol, symbol, day, volatility): symbol
            for symbol in symbols
        }
        wait(futures)
        self.days_run.append(day)

    def _run_symbol(self, symbol: str, day: date, volatility: VolatilityPair) -> Optional[str]:
        """종목 하나 실행. 예외는 여기서 잡아서 그 (종목, 날짜)만 실패 처리."""
        try:
            return self.trade_step.run(symbol, day, volatility)
        except Exception as e:
            logger.error(f"{symbol}: {day} 처리 실패: {e}", exc_info=True)
            self.failures.append((symbol, day, e))
            return None

    def _mark_to_market(self, last_trading_date: date) -> dict[str, float]:
        """보유 종목을 마지막 거래일 수정종가로 평가. {symbol: price} 반환."""
        last_prices: dict[str, float] = {}
        for symbol in self.portfolio.get_holding_symbols():
            bar = self.accessor.latest_bar_on_or_before(symbol, last_trading_date)
            if bar is None:
                price = self.portfolio.get_position(symbol).avg_price
            else:
                price = bar.adjusted_close
            self.portfolio.mark_to_market(symbol, price)
            last_prices[symbol] = price
        return last_prices
