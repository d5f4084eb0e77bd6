"""
Yahoo Finance 데이터 수집 모듈.

[ 역할 ]
    yfinance로 일봉(배당/분할 포함)과 변동성 지수(^VIX)를 받아오고,
    지표는 ingestion/indicators.py로 로컬 계산한다.

[ 재시도 ]
    요청 실패(스로틀링 등) 시 지수 백오프 + 지터로 재시도, 한도 초과 시 None/빈 리스트.

[ 호출하는 곳 ]
    - scripts/update_data.py
"""

import logging
import random
import time
from datetime import date, timedelta
from typing import Any, Optional

import pandas as pd
import yfinance as yf

from trade_emulator.core.models import Bar, VolatilityPoint, to_date
from trade_emulator.ingestion.indicators import build_volatility_frame, compute_indicator

logger = logging.getLogger("trade_emulator.ingestion")

VOLATILITY_TICKER = "^VIX"

# 지표 warm-up용으로 since 이전에 더 받아오는 기간 (SMA200 기준 여유)
WARMUP_DAYS = 400

COLUMN_MAP = {
    "Date": "date",
    "Open": "open",
    "High": "high",
    "Low": "low",
    "Close": "close",
    "Adj Close": "adjusted_close",
    "Volume": "volume",
    "Dividends": "dividend_amount",
    "Stock Splits": "split_coefficient",
}


def validate_data(df: pd.DataFrame, symbol: str) -> bool:
    """수집한 일봉 검증. 필수 컬럼이 없으면 False, 나머지 이상치는 경고만."""
    if df is None or df.empty:
        logger.warning(f"{symbol}: 빈 데이터")
        return False

    required_columns = ["date", "open", "high", "low", "close", "adjusted_close", "volume"]
    missing_columns = set(required_columns) - set(df.columns)
    if missing_columns:
        logger.error(f"{symbol}: 컬럼 누락 {missing_columns}")
        return False

    null_counts = df[required_columns].isnull().sum()
    if null_counts.any():
        logger.warning(f"{symbol}: NULL 값 {null_counts[null_counts > 0].to_dict()}")

    for col in ["open", "high", "low", "close", "adjusted_close"]:
        invalid = (df[col] <= 0).sum()
        if invalid:
            logger.warning(f"{symbol}: {col} <= 0 인 행 {invalid}개")

    invalid = (df["high"] < df["low"]).sum()
    if invalid:
        logger.warning(f"{symbol}: 고가 < 저가 인 행 {invalid}개")

    return True


class YahooFinanceFetcher:
    """yfinance 기반 시세 수집기.

    같은 종목의 일봉은 한 번만 받아서 캐시한다 (지표 계열마다 다시 받지 않음).

    사용 예:
        fetcher = YahooFinanceFetcher()
        bars = fetcher.fetch_daily_bars("AAPL", date(2021, 1, 1))
        points = fetcher.fetch_indicator("RSI", "AAPL", {"period": 14}, date(2021, 1, 1))
    """

    def __init__(self, max_retries: int = 3, retry_delay: float = 2.0, backoff_cap: float = 60.0):
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.backoff_cap = backoff_cap
        self._cache: dict[tuple[str, date], pd.DataFrame] = {}

    def _download(self, symbol: str, start: date) -> Optional[pd.DataFrame]:
        """start부터 오늘까지 일봉. 실패 시 재시도 후 None."""
        for attempt in range(self.max_retries):
            try:
                logger.info(f"{symbol}: {start}부터 수집 (시도 {attempt + 1}/{self.max_retries})")
                df = yf.Ticker(symbol).history(start=start, auto_adjust=False, actions=True)
                if df.empty:
                    logger.warning(f"{symbol}: 데이터 없음")
                    return None

                df = df.reset_index().rename(columns=COLUMN_MAP)
                df = df[[c for c in COLUMN_MAP.values() if c in df.columns]]
                if pd.api.types.is_datetime64_any_dtype(df["date"]):
                    df["date"] = df["date"].dt.date
                if "dividend_amount" not in df.columns:
                    df["dividend_amount"] = 0.0
                if "split_coefficient" not in df.columns:
                    df["split_coefficient"] = 1.0
                # yfinance는 분할 없는 날을 0으로 준다
                df["split_coefficient"] = df["split_coefficient"].replace(0, 1.0)

                if not validate_data(df, symbol):
                    return None
                logger.info(f"{symbol}: {len(df)}건 수집")
                return df

            except Exception as e:
                logger.error(f"{symbol}: 수집 오류 (시도 {attempt + 1}/{self.max_retries}): {e}")
                if attempt < self.max_retries - 1:
                    temp = min(self.backoff_cap, self.retry_delay * 2 ** attempt)
                    sleep = temp / 2 + random.uniform(0, temp / 2)
                    logger.info(f"{sleep:.1f}초 후 재시도")
                    time.sleep(sleep)

        logger.error(f"{symbol}: 재시도 한도 초과")
        return None

    def _history(self, symbol: str, since: date) -> Optional[pd.DataFrame]:
        """warm-up 기간을 포함한 일봉 (캐시)."""
        start = to_date(since) - timedelta(days=WARMUP_DAYS)
        key = (symbol, start)
        if key not in self._cache:
            df = self._download(symbol, start)
            if df is None:
                return None
            self._cache[key] = df
        return self._cache[key]

    def fetch_daily_bars(self, symbol: str, since: date) -> list[Bar]:
        """since 이후 일봉."""
        df = self._history(symbol, since)
        if df is None:
            return []
        since = to_date(since)
        return [
            Bar.from_record({**row, "symbol": symbol})
            for row in df[df["date"] >= since].to_dict("records")
        ]

    def fetch_indicator(
        self,
        kind: str,
        symbol: str,
        params: dict[str, Any],
        since: date,
    ) -> pd.DataFrame:
        """since 이후 지표 계열 하나 (인덱스: date). 실패 시 빈 DataFrame."""
        df = self._history(symbol, since)
        if df is None:
            return pd.DataFrame()
        result = compute_indicator(kind, df, params)
        return result[result.index >= to_date(since)]

    def fetch_volatility_series(self, since: date) -> list[VolatilityPoint]:
        """since 이후 변동성 지수 (종가 SMA10~200 포함)."""
        df = self._history(VOLATILITY_TICKER, since)
        if df is None:
            return []
        frame = build_volatility_frame(df)
        since = to_date(since)
        return [
            VolatilityPoint.from_record(row)
            for row in frame.to_dict("records")
            if to_date(row["date"]) >= since
        ]

    def clear_cache(self) -> None:
        self._cache.clear()
