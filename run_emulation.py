"""
매매 에뮬레이션 실행 스크립트 (시스템 진입점).

[ 사용법 ]
    # 종목, 기간, 전략 지정
    python run_emulation.py AAPL,MSFT 2021-01-04 2021-03-31 MACD

    # config.yaml의 emulation.symbols 전체, 기본 기간(최근 7일), config의 전략
    python run_emulation.py '*'

    # 샘플 데이터로 실행 (ClickHouse 불필요)
    python run_emulation.py AAPL,MSFT 2021-01-04 2021-06-30 RSI --source sample

    # 등록된 전략 목록 확인
    python run_emulation.py --list
"""

import argparse
import sys
import zlib
from datetime import date, timedelta
from pathlib import Path

import numpy as np
import pandas as pd

from trade_emulator.backtest.engine import EmulationEngine
from trade_emulator.core.data_store import Collection, DataStore
from trade_emulator.core.exceptions import UnknownStrategyError
from trade_emulator.data.clickhouse_store import ClickHouseDataStore
from trade_emulator.data.market_data import SnapshotAccessor
from trade_emulator.data.memory_store import InMemoryDataStore
from trade_emulator.ingestion.indicators import (
    build_indicator_frame,
    build_volatility_frame,
    frame_to_snapshot_records,
)
from trade_emulator.strategies import create_strategy, list_strategies
from trade_emulator.utils.config import Config
from trade_emulator.utils.logger import setup_logger

# 샘플 데이터 생성 시 지표 warm-up용으로 더 만드는 기간
SAMPLE_WARMUP_DAYS = 400


def generate_sample_data(
    symbol: str,
    start_date: date,
    end_date: date,
    initial_price: float = 100.0,
    volatility: float = 0.02,
) -> pd.DataFrame:
    """에뮬레이션용 샘플 일봉 생성 (종목 이름으로 시드 고정)."""
    rng = np.random.default_rng(zlib.crc32(symbol.encode()))

    dates = pd.bdate_range(start=start_date, end=end_date)
    n = len(dates)

    returns = rng.normal(0.0003, volatility, n)
    prices = initial_price * np.cumprod(1 + returns)

    data = []
    for i, d in enumerate(dates):
        close = prices[i]
        high = close * (1 + abs(rng.normal(0, 0.01)))
        low = close * (1 - abs(rng.normal(0, 0.01)))
        open_price = min(max(close * (1 + rng.normal(0, 0.005)), low), high)

        data.append({
            "symbol": symbol,
            "date": d.date(),
            "open": round(open_price, 2),
            "high": round(high, 2),
            "low": round(low, 2),
            "close": round(close, 2),
            "adjusted_close": round(close, 2),
            "volume": int(rng.lognormal(12, 1)),
            "dividend_amount": 0.0,
            "split_coefficient": 1.0,
        })

    return pd.DataFrame(data)


def load_sample_store(symbols: list[str], from_date: date, to_date: date) -> InMemoryDataStore:
    """샘플 일봉/지표/변동성 지수를 메모리 저장소에 적재."""
    store = InMemoryDataStore()
    start = from_date - timedelta(days=SAMPLE_WARMUP_DAYS)

    print("샘플 데이터 생성 중...")
    for symbol in symbols:
        bars = generate_sample_data(symbol, start, to_date, initial_price=50.0 + zlib.crc32(symbol.encode()) % 200)
        store.upsert_many(Collection.DAILY_BARS, bars.to_dict("records"))
        indicators = build_indicator_frame(symbol, bars)
        store.upsert_many(Collection.TECHNICAL_INDICATORS, frame_to_snapshot_records(symbol, indicators))
        print(f"  {symbol}: {len(bars)}일 데이터")

    vix = generate_sample_data("^VIX", start, to_date, initial_price=20.0, volatility=0.06)
    store.upsert_many(
        Collection.VOLATILITY_INDEX,
        build_volatility_frame(vix.drop(columns=["symbol"])).to_dict("records"),
    )
    return store


def open_store(config: Config, source: str, symbols: list[str], from_date: date, to_date: date) -> DataStore:
    """데이터 소스에 맞는 저장소 생성."""
    if source == "sample":
        return load_sample_store(symbols, from_date, to_date)

    db = config.database
    print(f"ClickHouse 연결: {db.host}:{db.port}/{db.database}")
    return ClickHouseDataStore(
        host=db.host,
        port=db.port,
        database=db.database,
        user=db.user,
        password=db.password,
        max_retries=db.max_retries,
        backoff_base=db.backoff_base,
        backoff_cap=db.backoff_cap,
    )


def parse_symbols(arg: str, config: Config) -> list[str]:
    """'AAPL,MSFT' 또는 '*'(config.yaml의 emulation.symbols)."""
    if arg.strip() == "*":
        return list(config.emulation.symbols)
    return [s.strip() for s in arg.split(",") if s.strip()]


def main() -> int:
    parser = argparse.ArgumentParser(description="주식 매매 에뮬레이션 실행")
    parser.add_argument("symbols", nargs="?", help="종목 코드 (쉼표 구분) 또는 '*'")
    parser.add_argument("from_date", nargs="?", type=date.fromisoformat, help="시작일 YYYY-MM-DD (기본: 7일 전)")
    parser.add_argument("to_date", nargs="?", type=date.fromisoformat, help="종료일 YYYY-MM-DD (기본: 오늘)")
    parser.add_argument("strategy", nargs="?", help="전략 이름 (기본: config.yaml의 strategy.name)")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    parser.add_argument("--source", type=str, default="clickhouse", choices=["clickhouse", "sample"], help="데이터 소스")
    parser.add_argument("--list", action="store_true", help="등록된 전략 목록 출력")
    args = parser.parse_args()

    # 전략 목록 출력
    if args.list:
        print("등록된 전략:")
        for name in list_strategies():
            print(f"  - {name}")
        return 0

    if not args.symbols:
        parser.error("종목 코드를 지정하세요 (예: AAPL,MSFT 또는 '*')")

    # 설정 로드
    config_path = Path(args.config)
    if config_path.exists():
        config = Config.load(config_path)
    else:
        print(f"설정 파일 없음: {config_path}, 기본값 사용")
        config = Config()

    today = date.today()
    from_date = args.from_date or today - timedelta(days=7)
    to_date = args.to_date or today
    strategy_name = args.strategy or config.strategy.name

    # 전략은 거래 시작 전에 한 번만 해석
    try:
        strategy = create_strategy(strategy_name, params=config.strategy.params)
    except UnknownStrategyError as e:
        print(f"오류: {e}", file=sys.stderr)
        return 1

    setup_logger(level=config.log_level, log_dir=config.log_dir, run_tag=strategy.name)

    symbols = parse_symbols(args.symbols, config)
    store = open_store(config, args.source, symbols, from_date, to_date)
    try:
        if not symbols and isinstance(store, ClickHouseDataStore):
            symbols = store.get_symbols()
        if not symbols:
            print("오류: 에뮬레이션할 종목이 없습니다 (config.yaml의 emulation.symbols 확인)")
            return 1

        print(f"\n전략: {strategy.name}, 종목: {', '.join(symbols)}, 기간: {from_date} ~ {to_date}")
        engine = EmulationEngine(SnapshotAccessor(store), strategy, config.emulation)
        report = engine.run(symbols, from_date, to_date)
    finally:
        store.close()

    print(report.summary())
    if engine.failures:
        print(f"\n처리 실패 {len(engine.failures)}건 (로그 참고)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
