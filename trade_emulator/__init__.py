"""
=============================================================================
주식 매매 에뮬레이터 (Trade Emulator)
=============================================================================

[ 시스템 전체 구조 ]

    run_emulation.py (진입점)
         │
         ├── utils/config.py        ← config.yaml 설정 로드
         ├── utils/logger.py        ← 로깅
         │
         ├── strategies/            ← 매수/매도 시그널 (MACD, MACD-Hist, BB, RSI, EMA2, VIXss)
         │
         └── backtest/engine.py     ← 일자별 실행 루프 (종목 동시 실행 + 하루 단위 배리어)
               │
               ├── backtest/trade_step.py  ← (종목, 날짜) 단위 매매 판단
               ├── data/market_data.py     ← 일봉/지표/변동성 지수 조회
               ├── data/portfolio.py       ← 현금/포지션/수수료/세금 원장
               └── backtest/report.py      ← 최종 리포트

    scripts/update_data.py (데이터 수집)
         │
         ├── ingestion/yahoo_finance.py   ← yfinance 일봉, ^VIX
         ├── ingestion/indicators.py      ← pandas 지표 계산
         └── data/clickhouse_store.py     ← ClickHouse 저장


[ 핵심 추상 클래스 (core/) ]

    core/data_store.py       → data/clickhouse_store.py (ClickHouse)
                             → data/memory_store.py     (테스트, 샘플 데이터)

    core/trading_strategy.py → strategies/*.py (StrategyKind별 구현)


[ 데이터 흐름 ]

    1. update_data.py가 일봉/지표/VIX를 저장소에 upsert
    2. 엔진이 시작일~마지막 거래일을 하루씩 진행 (토/일 제외)
    3. TradeStep이 전일/당일 지표로 전략 시그널을 받아 Portfolio에 매수/매도
    4. 종료 시 보유 종목 평가손익 반영 후 리포트 출력
"""
