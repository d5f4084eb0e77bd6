from datetime import date

import numpy as np
import pandas as pd
import pytest

from trade_emulator.core.exceptions import DateMisalignmentError
from trade_emulator.core.models import IndicatorSnapshot
from trade_emulator.ingestion.indicators import (
    build_indicator_frame,
    build_volatility_frame,
    compute_indicator,
    ema,
    frame_to_snapshot_records,
    merge_indicator_families,
    rsi,
    sma,
)


@pytest.fixture
def bars():
    dates = [d.date() for d in pd.bdate_range("2020-01-01", periods=260)]
    rng = np.random.default_rng(7)
    close = 100 * np.cumprod(1 + rng.normal(0, 0.01, len(dates)))
    return pd.DataFrame({
        "date": dates,
        "open": close,
        "high": close * 1.01,
        "low": close * 0.99,
        "close": close,
        "adjusted_close": close,
    })


def test_sma_warm_up():
    series = pd.Series([1.0, 2.0, 3.0, 4.0])
    result = sma(series, 3)
    assert result.isna().tolist() == [True, True, False, False]
    assert result.iloc[2] == pytest.approx(2.0)


def test_ema_warm_up():
    result = ema(pd.Series(np.arange(10, dtype=float)), 5)
    assert result.iloc[:4].isna().all()
    assert result.iloc[4:].notna().all()


def test_rsi_bounds_and_warm_up(bars):
    result = rsi(bars["adjusted_close"], 14)
    assert result.iloc[:14].isna().all()
    valid = result.dropna()
    assert ((valid >= 0) & (valid <= 100)).all()


def test_rsi_only_gains_is_100():
    result = rsi(pd.Series(np.arange(1.0, 20.0)), 14)
    assert result.iloc[-1] == 100.0


def test_indicator_frame_fields_absent_before_period(bars):
    frame = build_indicator_frame("AAPL", bars)
    records = frame_to_snapshot_records("AAPL", frame)

    first = IndicatorSnapshot.from_record(records[0])
    assert first.sma50 is None
    assert first.macd is None
    assert first.rsi14 is None

    at_60 = IndicatorSnapshot.from_record(records[60])
    assert at_60.sma50 is not None
    assert at_60.sma200 is None
    assert at_60.macd is not None

    last = IndicatorSnapshot.from_record(records[-1])
    assert last.sma200 is not None
    assert last.bband_upper > last.bband_middle > last.bband_lower
    assert last.atr14 > 0
    assert last.date == bars["date"].iloc[-1]


def test_unknown_indicator_kind(bars):
    with pytest.raises(ValueError):
        compute_indicator("ADX", bars, {"period": 14})


def test_merge_rejects_misaligned_families(bars):
    rsi_family = compute_indicator("RSI", bars, {"period": 14})
    sma_family = compute_indicator("SMA", bars.iloc[:-1], {"period": 20})
    with pytest.raises(DateMisalignmentError):
        merge_indicator_families("AAPL", [rsi_family, sma_family])


def test_merge_aligned_families(bars):
    merged = merge_indicator_families("AAPL", [
        compute_indicator("RSI", bars, {"period": 2}),
        compute_indicator("EMA", bars, {"period": 13}),
    ])
    assert list(merged.columns) == ["rsi2", "ema13"]
    assert len(merged) == len(bars)


def test_volatility_frame_sma10():
    vix = pd.DataFrame({
        "date": [date(2021, 1, d) for d in range(4, 16)],
        "open": 20.0, "high": 21.0, "low": 19.0,
        "close": [float(v) for v in range(10, 22)],
    })
    frame = build_volatility_frame(vix)
    assert frame["sma10"].iloc[8] is None
    assert frame["sma10"].iloc[9] == pytest.approx(14.5)
