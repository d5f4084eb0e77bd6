"""
포트폴리오(원장) 관리 모듈.

[ 역할 ]
    현금, 종목별 포지션(Position), 누적 수수료/세금, 거래 기록(TradeRecord)을 통합 관리.
    에뮬레이터의 모든 자금/포지션 변경은 이 클래스의 메서드를 통해서만 일어난다.

[ 주요 클래스 ]
    Position    - 종목별 수량/평단/누적손익/손절가/목표가/보유일 카운터
    TradeRecord - 개별 거래 내역 (매수/매도, 손익/세금 포함)
    Portfolio   - 전체 포트폴리오 (현금 + 포지션들 + 거래내역)

[ 매수 규칙 ]
    - 보유 중인 종목은 평단보다 낮은 가격에서만 추가 매수 (물타기만 허용)
    - 현금 >= min_buy 이고 현금 >= 가격 + 수수료 일 때만 매수
    - 수량 = floor(min(max_buy, 현금 - 수수료) / 가격)

[ 매도 규칙 ]
    - 보유 수량 전량 매도
    - 강제 매도가 아니면 매도가 > 평단일 때만 매도
    - 세금 = 실현손익 × tax_rate (손실이면 음수 세금 = 환급)

[ 동시성 ]
    엔진은 하루 안에서 종목들을 동시에 평가한다. 현금은 모든 종목이 공유하므로
    serialize=True(기본)이면 매수/매도/분할조정을 락으로 직렬화한다.

[ 호출하는 곳 ]
    - backtest/trade_step.py::TradeStep에서 buy()/sell()/split_adjust() 호출
    - backtest/engine.py에서 종료 시 mark_to_market() 호출, report.py에서 요약
"""

import logging
import math
import threading
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from trade_emulator.core.models import Bar

logger = logging.getLogger("trade_emulator.portfolio")


@dataclass
class Position:
    """종목별 포지션. Portfolio 내부에서 종목별로 관리됨."""
    symbol: str
    quantity: float = 0                   # 보유 수량 (액면분할 조정 시 소수 가능)
    avg_price: Optional[float] = None     # 평균 매수가 (보유 중일 때만 값이 있음)
    profit: float = 0.0                   # 누적 실현 손익 (종료 시 평가손익 포함)
    days_since_buy: int = 0               # 마지막 매수 이후 거래일 수
    red_days_since_buy: int = 0           # 마지막 매수 이후 음봉 일수
    stop_loss: Optional[float] = None     # 손절가
    profit_target: Optional[float] = None  # 목표가

    @property
    def is_open(self) -> bool:
        return self.quantity > 0

    def update_on_buy(self, quantity: int, price: float) -> None:
        """매수 시 수량/가중평균 매수가 갱신."""
        if self.quantity > 0:
            new_quantity = self.quantity + quantity
            self.avg_price = (self.quantity * self.avg_price + quantity * price) / new_quantity
            self.quantity = new_quantity
        else:
            self.quantity = quantity
            self.avg_price = price

    def close(self) -> None:
        """전량 매도 후 포지션 정리. 누적 손익은 유지."""
        self.quantity = 0
        self.avg_price = None
        self.stop_loss = None
        self.profit_target = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "quantity": self.quantity,
            "avg_price": round(self.avg_price, 2) if self.avg_price is not None else None,
            "profit": round(self.profit, 2),
            "stop_loss": self.stop_loss,
            "profit_target": self.profit_target,
        }


@dataclass
class TradeRecord:
    """개별 거래 기록."""
    date: date
    symbol: str
    side: str           # "buy" or "sell"
    quantity: float
    price: float
    fee: float = 0.0
    tax: float = 0.0    # 매도 시에만
    profit: float = 0.0  # 실현 손익 (매도 시에만)
    forced: bool = False  # 손절/목표가 등 강제 매도 여부


class Portfolio:
    """포트폴리오(원장) 클래스.

    에뮬레이션 1회 실행 동안 EmulationEngine이 소유하며, 종료 후 버려진다.
    """

    def __init__(
        self,
        initial_cash: float = 1_000_000,
        min_buy: float = 1000,
        max_buy: float = 5000,
        transaction_fee: float = 0.0,
        tax_rate: float = 0.25,
        serialize: bool = True,
    ):
        self.initial_cash = initial_cash
        self.cash = initial_cash                      # 가용 현금
        self.min_buy = min_buy
        self.max_buy = max_buy
        self.transaction_fee = transaction_fee
        self.tax_rate = tax_rate
        self.positions: dict[str, Position] = {}      # symbol → Position
        self.trade_history: list[TradeRecord] = []
        self.transaction_fees: float = 0.0            # 누적 수수료
        self.taxes: float = 0.0                       # 누적 세금
        self._lock = threading.Lock() if serialize else nullcontext()

    @classmethod
    def from_config(cls, config) -> "Portfolio":
        """utils/config.py::EmulationConfig로 생성."""
        return cls(
            initial_cash=config.initial_cash,
            min_buy=config.min_buy,
            max_buy=config.max_buy,
            transaction_fee=config.transaction_fee,
            tax_rate=config.tax_rate,
            serialize=config.serialize_ledger,
        )

    def get_position(self, symbol: str) -> Position:
        """종목 포지션 조회. 없으면 빈 포지션 생성."""
        if symbol not in self.positions:
            self.positions[symbol] = Position(symbol=symbol)
        return self.positions[symbol]

    def open_positions(self, symbols: list[str]) -> None:
        """종목별 빈 포지션을 미리 생성 (동시 평가 전에 호출)."""
        for symbol in symbols:
            self.get_position(symbol)

    def buy(self, trade_date: date, symbol: str, bar: Bar) -> bool:
        """수정종가로 매수. 체결되면 True."""
        price = bar.adjusted_close
        with self._lock:
            position = self.get_position(symbol)

            if position.quantity > 0 and price >= position.avg_price:
                logger.info(f"{symbol}: 평단({position.avg_price:,.2f}) 이상 가격({price:,.2f})에서는 추가 매수하지 않음")
                return False

            fee = self.transaction_fee
            if price <= 0 or self.cash < self.min_buy or self.cash < price + fee:
                logger.info(f"[{trade_date}] 매수 불가: {symbol} @ {price:,.2f}, 현금 부족 ({self.cash:,.2f})")
                return False

            quantity = math.floor(min(self.max_buy, self.cash - fee) / price)
            if quantity <= 0:
                logger.info(f"[{trade_date}] 매수 불가: {symbol} @ {price:,.2f}, 1주 가격이 최대 매수금액 초과")
                return False

            self.cash -= quantity * price + fee
            position.update_on_buy(quantity, price)
            self.transaction_fees += fee

            self.trade_history.append(TradeRecord(
                date=trade_date,
                symbol=symbol,
                side="buy",
                quantity=quantity,
                price=price,
                fee=fee,
            ))
            logger.info(
                f"[{trade_date}] 매수: {symbol} {quantity}주 @ {price:,.2f}"
                f" → 보유 {position.quantity}주 (평단 {position.avg_price:,.2f}), 현금 {self.cash:,.2f}"
            )
            return True

    def sell(
        self,
        trade_date: date,
        symbol: str,
        bar: Bar,
        force: bool = False,
        sell_price: Optional[float] = None,
    ) -> bool:
        """보유 수량 전량 매도. 체결되면 True.

        Args:
            trade_date: 거래일
            symbol: 종목 코드
            bar: 당일 일봉
            force: True면 평단 이하에서도 매도 (손절 등)
            sell_price: 지정 매도가. None이면 수정종가
        """
        with self._lock:
            position = self.get_position(symbol)
            if position.quantity <= 0:
                return False

            if sell_price is not None:
                logger.info(f"{symbol}: 수정종가 {bar.adjusted_close:,.2f} 대신 {sell_price:,.2f}에 매도 시도")
            else:
                sell_price = bar.adjusted_close

            if not force and sell_price <= position.avg_price:
                logger.info(f"{symbol}: 평단({position.avg_price:,.2f}) 이하 가격({sell_price:,.2f})에서는 매도하지 않음")
                return False

            quantity = position.quantity
            fee = self.transaction_fee
            profit = quantity * (sell_price - position.avg_price)
            tax = profit * self.tax_rate

            self.cash += quantity * sell_price - fee - tax
            self.transaction_fees += fee
            self.taxes += tax
            position.profit += profit
            position.close()

            self.trade_history.append(TradeRecord(
                date=trade_date,
                symbol=symbol,
                side="sell",
                quantity=quantity,
                price=sell_price,
                fee=fee,
                tax=tax,
                profit=profit,
                forced=force,
            ))
            logger.info(
                f"[{trade_date}] 매도: {symbol} {quantity}주 @ {sell_price:,.2f}"
                f", 손익 {profit:,.2f}, 현금 {self.cash:,.2f}"
            )
            return True

    def split_adjust(self, symbol: str, coefficient: float) -> None:
        """액면분할 반영: 수량 × 계수, 평단/손절가/목표가 ÷ 계수.

        Raises:
            ValueError: 계수가 0 이하
        """
        if coefficient <= 0:
            raise ValueError(f"{symbol}: 잘못된 분할 계수 {coefficient}")
        with self._lock:
            position = self.get_position(symbol)
            logger.info(f"{symbol}: 분할 조정 전 {position.to_dict()}")
            position.quantity *= coefficient
            if position.avg_price is not None:
                position.avg_price /= coefficient
            if position.stop_loss is not None:
                position.stop_loss /= coefficient
            if position.profit_target is not None:
                position.profit_target /= coefficient
            logger.info(f"{symbol}: 분할 조정 후 {position.to_dict()}")

    def mark_to_market(self, symbol: str, price: float) -> float:
        """보유 포지션의 평가손익을 누적 손익에 더한다. 현금은 변하지 않음.

        Returns:
            더해진 평가손익 (미보유면 0)
        """
        with self._lock:
            position = self.get_position(symbol)
            if position.quantity <= 0:
                return 0.0
            unrealized = position.quantity * (price - position.avg_price)
            position.profit += unrealized
            return unrealized

    def get_holding_symbols(self) -> list[str]:
        """보유 종목 코드 목록."""
        return [s for s, p in self.positions.items() if p.quantity > 0]

    def depot_value(self, prices: dict[str, float]) -> float:
        """보유 종목 평가액 (prices: symbol → 가격)."""
        return sum(
            self.positions[symbol].quantity * prices[symbol]
            for symbol in self.get_holding_symbols()
            if symbol in prices
        )

    def get_summary(self) -> dict[str, Any]:
        """포트폴리오 요약."""
        return {
            "initial_cash": self.initial_cash,
            "current_cash": self.cash,
            "transaction_fees": self.transaction_fees,
            "taxes": self.taxes,
            "num_holdings": len(self.get_holding_symbols()),
            "num_trades": len(self.trade_history),
        }
