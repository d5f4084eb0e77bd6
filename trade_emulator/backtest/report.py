"""
에뮬레이션 결과 리포트 모듈.

[ 역할 ]
    에뮬레이션 종료 시점의 Portfolio로부터 최종 리포트를 만든다.
    build_report() 함수가 핵심.

[ 리포트 내용 ]
    - 청산 완료 종목 손익 (손익 0 제외, 손익 오름차순)
    - 보유 중인 종목 평가손익 (마지막 거래일 수정종가 기준, 손익 오름차순)
    - 현금 / 보유 평가액 / 합계
    - 누적 수수료 / 세금 (현금에 이미 반영됨)
    - 매도 거래 승률

[ 호출하는 곳 ]
    - backtest/engine.py::EmulationEngine.run() 완료 시 호출
"""

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Optional

from trade_emulator.data.portfolio import Portfolio


@dataclass
class PositionResult:
    """종목별 결과 한 줄."""
    symbol: str
    profit: float
    quantity: float = 0
    avg_price: Optional[float] = None
    last_price: Optional[float] = None


@dataclass
class EmulationReport:
    """에뮬레이션 리포트. summary()로 포맷된 문자열 출력 가능."""
    strategy: str = ""
    from_date: Optional[date] = None
    last_trading_date: Optional[date] = None
    closed_positions: list[PositionResult] = field(default_factory=list)
    open_positions: list[PositionResult] = field(default_factory=list)
    initial_cash: float = 0.0
    cash: float = 0.0
    depot_value: float = 0.0
    transaction_fees: float = 0.0
    taxes: float = 0.0
    total_trades: int = 0      # 매수+매도 체결 수
    sell_trades: int = 0
    winning_trades: int = 0

    @property
    def total_value(self) -> float:
        return self.cash + self.depot_value

    @property
    def total_return(self) -> float:
        """초기 자금 대비 수익률 (%)."""
        if not self.initial_cash:
            return 0.0
        return (self.total_value - self.initial_cash) / self.initial_cash * 100

    @property
    def win_rate(self) -> float:
        if not self.sell_trades:
            return 0.0
        return self.winning_trades / self.sell_trades * 100

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["total_value"] = self.total_value
        data["total_return"] = self.total_return
        return data

    def summary(self) -> str:
        """리포트 문자열."""
        lines = [
            "=" * 50,
            f"에뮬레이션 리포트 ({self.strategy}: {self.from_date} ~ {self.last_trading_date})",
            "=" * 50,
            "청산 종목 손익:",
        ]
        for result in self.closed_positions:
            lines.append(f"  {result.symbol:<8} {result.profit:>14,.2f}")
        lines.append("보유 종목 평가손익:")
        for result in self.open_positions:
            lines.append(
                f"  {result.symbol:<8} {result.profit:>14,.2f}"
                f"  ({result.quantity}주, 평단 {result.avg_price:,.2f}, 종가 {result.last_price:,.2f})"
            )
        lines += [
            "-" * 50,
            f"현금:            {self.cash:>16,.2f}",
            f"보유 평가액:     {self.depot_value:>16,.2f}",
            f"현금+평가액:     {self.total_value:>16,.2f}",
            f"총 수익률:       {self.total_return:>15.2f}%",
            f"수수료/세금:     {self.transaction_fees:>12,.2f} / {self.taxes:,.2f}",
            "-" * 50,
            f"체결 횟수:       {self.total_trades:>10d}",
            f"매도 승률:       {self.win_rate:>10.2f}%",
            "=" * 50,
        ]
        return "\n".join(lines)


def build_report(
    portfolio: Portfolio,
    last_prices: dict[str, float],
    strategy: str = "",
    from_date: Optional[date] = None,
    last_trading_date: Optional[date] = None,
) -> EmulationReport:
    """최종 리포트 생성. mark_to_market() 이후에 호출한다.

    Args:
        portfolio: 에뮬레이션이 끝난 포트폴리오
        last_prices: 보유 종목의 마지막 거래일 수정종가 {symbol: price}
        strategy: 전략 이름
        from_date: 시작일
        last_trading_date: 마지막 거래일
    """
    closed: list[PositionResult] = []
    open_: list[PositionResult] = []

    for symbol, position in portfolio.positions.items():
        if position.is_open:
            open_.append(PositionResult(
                symbol=symbol,
                profit=position.profit,
                quantity=position.quantity,
                avg_price=position.avg_price,
                last_price=last_prices.get(symbol, position.avg_price),
            ))
        elif position.profit != 0:
            closed.append(PositionResult(symbol=symbol, profit=position.profit))

    closed.sort(key=lambda r: r.profit)
    open_.sort(key=lambda r: r.profit)

    sells = [t for t in portfolio.trade_history if t.side == "sell"]
    return EmulationReport(
        strategy=strategy,
        from_date=from_date,
        last_trading_date=last_trading_date,
        closed_positions=closed,
        open_positions=open_,
        initial_cash=portfolio.initial_cash,
        cash=portfolio.cash,
        depot_value=portfolio.depot_value(last_prices),
        transaction_fees=portfolio.transaction_fees,
        taxes=portfolio.taxes,
        total_trades=len(portfolio.trade_history),
        sell_trades=len(sells),
        winning_trades=sum(1 for t in sells if t.profit > 0),
    )
