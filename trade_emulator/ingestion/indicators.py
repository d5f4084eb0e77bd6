"""
기술적 지표 계산 모듈 (pandas).

[ 역할 ]
    일봉 DataFrame으로부터 IndicatorSnapshot 필드와 같은 이름의 지표 컬럼을 계산.
    각 지표는 계산 기간만큼 데이터가 쌓이기 전에는 NaN이며, 저장 시 None(NULL)이 된다.

[ 입력 컬럼 ]
    date, open, high, low, close, adjusted_close
    - SMA/EMA/MACD/RSI/볼린저밴드: 수정종가 기준
    - ATR/NATR: 고가/저가/종가 기준

[ 지표 계열 (compute_indicator의 kind) ]
    SMA    params: period       → sma{period}
    EMA    params: period       → ema{period}
    MACD   params: fast/slow/signal → macd, macd_signal, macd_hist
    RSI    params: period       → rsi{period}  (Wilder 평활)
    BBANDS params: period/width → bband_upper, bband_middle, bband_lower
    ATR    params: period       → atr{period}
    NATR   params: period       → natr{period}

[ 호출하는 곳 ]
    - ingestion/yahoo_finance.py::YahooFinanceFetcher.fetch_indicator()
    - run_emulation.py (샘플 데이터 생성)
"""

import logging
from typing import Any

import pandas as pd

from trade_emulator.core.exceptions import DateMisalignmentError
from trade_emulator.core.models import IndicatorSnapshot

logger = logging.getLogger("trade_emulator.ingestion")

SMA_PERIODS = (15, 20, 50, 100, 200)
EMA_PERIODS = (5, 8, 9, 12, 13, 20, 21, 26, 34, 50, 100, 200)
VOLATILITY_SMA_PERIODS = (10, 15, 20, 50, 100, 200)

# 스냅샷 한 벌을 만드는 지표 계열 목록 (kind, params)
DEFAULT_INDICATOR_SET: list[tuple[str, dict[str, Any]]] = (
    [("SMA", {"period": p}) for p in SMA_PERIODS]
    + [("EMA", {"period": p}) for p in EMA_PERIODS]
    + [
        ("MACD", {"fast": 12, "slow": 26, "signal": 9}),
        ("RSI", {"period": 2}),
        ("RSI", {"period": 14}),
        ("BBANDS", {"period": 20, "width": 2.0}),
        ("ATR", {"period": 14}),
        ("NATR", {"period": 14}),
    ]
)


def sma(series: pd.Series, period: int) -> pd.Series:
    return series.rolling(window=period, min_periods=period).mean()


def ema(series: pd.Series, period: int) -> pd.Series:
    return series.ewm(span=period, adjust=False, min_periods=period).mean()


def macd(
    close: pd.Series,
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> pd.DataFrame:
    """MACD 라인, 시그널, 히스토그램."""
    macd_line = ema(close, fast) - ema(close, slow)
    signal_line = macd_line.ewm(span=signal, adjust=False, min_periods=signal).mean()
    return pd.DataFrame({
        "macd": macd_line,
        "macd_signal": signal_line,
        "macd_hist": macd_line - signal_line,
    })


def rsi(close: pd.Series, period: int = 14) -> pd.Series:
    """Wilder 평활 RSI (alpha = 1/period). 첫 period개는 NaN."""
    delta = close.diff()
    gain = delta.clip(lower=0)
    loss = (-delta).clip(lower=0)

    alpha = 1.0 / period
    avg_gain = gain.ewm(alpha=alpha, adjust=False, min_periods=period).mean()
    avg_loss = loss.ewm(alpha=alpha, adjust=False, min_periods=period).mean()

    rs = avg_gain / avg_loss
    result = 100.0 - (100.0 / (1.0 + rs))
    # 하락이 한 번도 없으면 100
    return result.where(avg_loss != 0, 100.0)


def bbands(close: pd.Series, period: int = 20, width: float = 2.0) -> pd.DataFrame:
    """볼린저 밴드 (모표준편차)."""
    middle = sma(close, period)
    std = close.rolling(window=period, min_periods=period).std(ddof=0)
    return pd.DataFrame({
        "bband_upper": middle + width * std,
        "bband_middle": middle,
        "bband_lower": middle - width * std,
    })


def atr(high: pd.Series, low: pd.Series, close: pd.Series, period: int = 14) -> pd.Series:
    """Average True Range (Wilder 평활). 첫 날은 고가-저가."""
    true_range = pd.concat([
        high - low,
        (high - close.shift()).abs(),
        (low - close.shift()).abs(),
    ], axis=1).max(axis=1)
    return true_range.ewm(alpha=1.0 / period, adjust=False, min_periods=period).mean()


def natr(high: pd.Series, low: pd.Series, close: pd.Series, period: int = 14) -> pd.Series:
    """ATR을 종가 대비 %로."""
    return atr(high, low, close, period) / close * 100.0


def compute_indicator(kind: str, bars: pd.DataFrame, params: dict[str, Any]) -> pd.DataFrame:
    """지표 계열 하나 계산. date 인덱스 + 지표 컬럼 DataFrame 반환.

    Raises:
        ValueError: 지원하지 않는 지표 계열
    """
    bars = bars.sort_values("date")
    close = bars["adjusted_close"].astype(float).reset_index(drop=True)
    kind = kind.upper()

    if kind == "SMA":
        result = pd.DataFrame({f"sma{params['period']}": sma(close, params["period"])})
    elif kind == "EMA":
        result = pd.DataFrame({f"ema{params['period']}": ema(close, params["period"])})
    elif kind == "MACD":
        result = macd(close, params.get("fast", 12), params.get("slow", 26), params.get("signal", 9))
    elif kind == "RSI":
        result = pd.DataFrame({f"rsi{params['period']}": rsi(close, params["period"])})
    elif kind == "BBANDS":
        result = bbands(close, params.get("period", 20), params.get("width", 2.0))
    elif kind in ("ATR", "NATR"):
        high = bars["high"].astype(float).reset_index(drop=True)
        low = bars["low"].astype(float).reset_index(drop=True)
        raw_close = bars["close"].astype(float).reset_index(drop=True)
        func = atr if kind == "ATR" else natr
        result = pd.DataFrame({f"{kind.lower()}{params['period']}": func(high, low, raw_close, params["period"])})
    else:
        raise ValueError(f"지원하지 않는 지표: {kind}")

    result.index = pd.Index(bars["date"].tolist(), name="date")
    return result


def merge_indicator_families(symbol: str, families: list[pd.DataFrame]) -> pd.DataFrame:
    """지표 계열들을 날짜 기준으로 합친다.

    계열마다 마지막 날짜가 다르면 (한쪽 데이터가 밀리거나 누락된 경우) 합치지 않는다.

    Raises:
        DateMisalignmentError: 계열 간 마지막 날짜 불일치
    """
    families = [f for f in families if not f.empty]
    if not families:
        return pd.DataFrame()

    last_dates = {f.index.max() for f in families}
    if len(last_dates) > 1:
        raise DateMisalignmentError(
            symbol, f"지표 계열 간 마지막 날짜 불일치: {sorted(last_dates)}"
        )
    logger.debug(f"{symbol}: 지표 계열 {len(families)}개 병합, 마지막 날짜 {last_dates.pop()}")
    return pd.concat(families, axis=1, join="outer").sort_index()


def build_indicator_frame(symbol: str, bars: pd.DataFrame) -> pd.DataFrame:
    """DEFAULT_INDICATOR_SET 전체를 계산해 합친 DataFrame (인덱스: date)."""
    families = [compute_indicator(kind, bars, params) for kind, params in DEFAULT_INDICATOR_SET]
    return merge_indicator_families(symbol, families)


def frame_to_snapshot_records(symbol: str, frame: pd.DataFrame) -> list[dict[str, Any]]:
    """지표 DataFrame → 저장용 레코드 리스트. NaN은 None."""
    value_fields = IndicatorSnapshot.value_fields()
    frame = frame.reindex(columns=value_fields)
    frame = frame.astype(object).where(frame.notna(), None)

    records = []
    for record_date, row in frame.iterrows():
        record = {"symbol": symbol, "date": record_date}
        record.update(row.to_dict())
        records.append(record)
    return records


def build_volatility_frame(vix: pd.DataFrame) -> pd.DataFrame:
    """변동성 지수 일봉에 종가 SMA 컬럼 추가."""
    vix = vix.sort_values("date").reset_index(drop=True)
    close = vix["close"].astype(float)
    for period in VOLATILITY_SMA_PERIODS:
        vix[f"sma{period}"] = sma(close, period)
    return vix.astype(object).where(vix.notna(), None)
