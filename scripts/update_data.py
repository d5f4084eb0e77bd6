#!/usr/bin/env python3
"""
시세/지표/변동성 지수를 수집하여 ClickHouse에 저장하는 스크립트.

[ 사용법 ]
    python scripts/update_data.py AAPL,MSFT 2021-01-01
    python scripts/update_data.py '*'              # config.yaml의 emulation.symbols, data_ingestion.default_since

[ 처리 순서 ]
    1. 테이블이 없으면 생성 (initialize_schema)
    2. 종목별 일봉 수집 → daily_bars
    3. 종목별 지표 계열 계산 → 날짜 기준 병합 → technical_indicators
    4. 변동성 지수(^VIX) → volatility_index
    같은 (종목, 날짜)는 덮어쓴다 (ReplacingMergeTree).
"""
import argparse
import logging
import sys
from datetime import date
from pathlib import Path

# 프로젝트 루트를 sys.path에 추가
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from trade_emulator.core.data_store import Collection, DataStore
from trade_emulator.core.exceptions import DateMisalignmentError
from trade_emulator.data.clickhouse_store import ClickHouseDataStore
from trade_emulator.ingestion.clickhouse_schema import initialize_schema, verify_connection
from trade_emulator.ingestion.indicators import (
    DEFAULT_INDICATOR_SET,
    frame_to_snapshot_records,
    merge_indicator_families,
)
from trade_emulator.ingestion.yahoo_finance import YahooFinanceFetcher
from trade_emulator.utils.config import Config
from trade_emulator.utils.logger import setup_logger

logger = logging.getLogger("trade_emulator.ingestion")


def update_symbol(store: DataStore, fetcher: YahooFinanceFetcher, symbol: str, since: date) -> bool:
    """종목 하나의 일봉과 지표를 저장. 성공 시 True, 실패는 로그만 남기고 False."""
    try:
        bars = fetcher.fetch_daily_bars(symbol, since)
        if not bars:
            logger.warning(f"{symbol}: {since} 이후 일봉 없음")
            return False
        store.upsert_many(Collection.DAILY_BARS, [bar.to_record() for bar in bars])

        families = [
            fetcher.fetch_indicator(kind, symbol, params, since)
            for kind, params in DEFAULT_INDICATOR_SET
        ]
        merged = merge_indicator_families(symbol, families)

        store.upsert_many(Collection.TECHNICAL_INDICATORS, frame_to_snapshot_records(symbol, merged))
        logger.info(f"{symbol}: 일봉 {len(bars)}건, 지표 {len(merged)}건 저장")
        return True

    except DateMisalignmentError as e:
        logger.error(f"지표 병합 실패: {e}")
        return False
    except Exception as e:
        logger.error(f"{symbol} 수집 실패: {e}", exc_info=True)
        return False


def update_volatility(store: DataStore, fetcher: YahooFinanceFetcher, since: date) -> bool:
    try:
        points = fetcher.fetch_volatility_series(since)
        if not points:
            logger.warning(f"변동성 지수: {since} 이후 데이터 없음")
            return False
        store.upsert_many(Collection.VOLATILITY_INDEX, [point.to_record() for point in points])
        return True
    except Exception as e:
        logger.error(f"변동성 지수 수집 실패: {e}", exc_info=True)
        return False


def main():
    parser = argparse.ArgumentParser(description="시세/지표/변동성 지수 수집 후 ClickHouse 저장")
    parser.add_argument("symbols", help="종목 코드 (쉼표 구분) 또는 '*'")
    parser.add_argument("since", nargs="?", type=date.fromisoformat, help="수집 시작일 YYYY-MM-DD")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    args = parser.parse_args()

    config_path = Path(args.config)
    config = Config.load(config_path) if config_path.exists() else Config()
    setup_logger(level=config.log_level, log_dir=config.log_dir, run_tag="update")

    if args.symbols.strip() == "*":
        symbols = list(config.emulation.symbols)
    else:
        symbols = [s.strip() for s in args.symbols.split(",") if s.strip()]
    if not symbols:
        logger.error("수집할 종목이 없습니다 (config.yaml의 emulation.symbols 확인)")
        sys.exit(1)

    since = args.since or date.fromisoformat(config.data_ingestion.default_since)
    ingestion = config.data_ingestion
    fetcher = YahooFinanceFetcher(
        max_retries=ingestion.max_retries,
        retry_delay=ingestion.retry_delay,
        backoff_cap=ingestion.backoff_cap,
    )

    db = config.database
    store = ClickHouseDataStore(
        host=db.host,
        port=db.port,
        database=db.database,
        user=db.user,
        password=db.password,
        max_retries=db.max_retries,
        backoff_base=db.backoff_base,
        backoff_cap=db.backoff_cap,
    )
    try:
        if not verify_connection(store.client):
            sys.exit(1)
        initialize_schema(store.client)

        logger.info(f"수집 대상: {symbols}, 시작일: {since}")
        fail_count = 0
        for symbol in symbols:
            if not update_symbol(store, fetcher, symbol, since):
                fail_count += 1
        if not update_volatility(store, fetcher, since):
            fail_count += 1

        logger.info("=" * 60)
        logger.info(f"수집 완료: 성공 {len(symbols) - min(fail_count, len(symbols))}/{len(symbols)}, 실패 {fail_count}")
        logger.info("=" * 60)
    finally:
        store.close()

    sys.exit(0 if fail_count == 0 else 1)


if __name__ == "__main__":
    main()
