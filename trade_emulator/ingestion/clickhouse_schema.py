"""
ClickHouse 데이터베이스 스키마 정의 및 연결 관리
"""
from dataclasses import fields

import clickhouse_connect
from clickhouse_connect.driver import Client

from trade_emulator.core.data_store import Collection
from trade_emulator.core.models import Bar, IndicatorSnapshot, VolatilityPoint


# 컬렉션 → 테이블 컬럼 (ingestion_time 제외)
TABLE_COLUMNS: dict[Collection, list[str]] = {
    Collection.DAILY_BARS: [f.name for f in fields(Bar)],
    Collection.TECHNICAL_INDICATORS: [f.name for f in fields(IndicatorSnapshot)],
    Collection.VOLATILITY_INDEX: [f.name for f in fields(VolatilityPoint)],
}


def get_client(
    host: str = "localhost",
    port: int = 8123,
    database: str = "default",
    user: str = "default",
    password: str = "password",
) -> Client:
    """
    ClickHouse 클라이언트 연결 생성

    에뮬레이터는 하루 단위로 여러 종목을 동시에 조회하므로
    세션 ID를 자동 생성하지 않는다 (세션 하나에 동시 쿼리 불가).

    Args:
        host: ClickHouse 호스트
        port: HTTP 포트 (기본값: 8123)
        database: 데이터베이스 이름
        user: 사용자 이름
        password: 비밀번호

    Returns:
        ClickHouse 클라이언트 객체
    """
    client = clickhouse_connect.get_client(
        host=host,
        port=port,
        database=database,
        username=user,
        password=password,
        autogenerate_session_id=False,
    )
    return client


def initialize_schema(client: Client) -> None:
    """
    필요한 테이블 생성 (이미 존재하면 무시)

    ReplacingMergeTree(ingestion_time)를 사용하므로 같은 키로 다시 넣으면
    머지 시 최신 레코드만 남는다. 조회는 FINAL로 중복을 제거한다.

    Args:
        client: ClickHouse 클라이언트
    """
    # daily_bars 테이블 (일봉)
    create_bars_table = """
    CREATE TABLE IF NOT EXISTS daily_bars (
        symbol String,
        date Date,
        open Float64,
        high Float64,
        low Float64,
        close Float64,
        adjusted_close Float64,
        volume UInt64,
        dividend_amount Float64 DEFAULT 0,
        split_coefficient Float64 DEFAULT 1,
        ingestion_time DateTime DEFAULT now()
    )
    ENGINE = ReplacingMergeTree(ingestion_time)
    PARTITION BY toYYYYMM(date)
    ORDER BY (symbol, date)
    """

    # technical_indicators 테이블 (지표는 warm-up 전에는 NULL)
    indicator_columns = ",\n        ".join(
        f"{name} Nullable(Float64)" for name in IndicatorSnapshot.value_fields()
    )
    create_indicators_table = f"""
    CREATE TABLE IF NOT EXISTS technical_indicators (
        symbol String,
        date Date,
        {indicator_columns},
        ingestion_time DateTime DEFAULT now()
    )
    ENGINE = ReplacingMergeTree(ingestion_time)
    PARTITION BY toYYYYMM(date)
    ORDER BY (symbol, date)
    """

    # volatility_index 테이블 (VIX, 종목 무관)
    create_vix_table = """
    CREATE TABLE IF NOT EXISTS volatility_index (
        date Date,
        open Float64,
        high Float64,
        low Float64,
        close Float64,
        sma10 Nullable(Float64),
        sma15 Nullable(Float64),
        sma20 Nullable(Float64),
        sma50 Nullable(Float64),
        sma100 Nullable(Float64),
        sma200 Nullable(Float64),
        ingestion_time DateTime DEFAULT now()
    )
    ENGINE = ReplacingMergeTree(ingestion_time)
    ORDER BY date
    """

    client.command(create_bars_table)
    client.command(create_indicators_table)
    client.command(create_vix_table)


def verify_connection(client: Client) -> bool:
    """
    ClickHouse 연결 검증

    Args:
        client: ClickHouse 클라이언트

    Returns:
        연결 성공 시 True
    """
    result = client.command("SELECT 1")
    return result == 1
