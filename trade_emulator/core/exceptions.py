"""
에뮬레이터 예외 정의.

[ 분류 ]
    EmulationError          - 모든 에뮬레이터 예외의 부모
    DateMisalignmentError   - 지표/시세 날짜 불일치. 해당 (종목, 날짜)만 실패 처리
    UnknownStrategyError    - 등록되지 않은 전략 이름. 시뮬레이션 시작 전 치명적 오류

[ 처리하는 곳 ]
    - backtest/engine.py: 종목별 작업 경계에서 잡아서 로깅 (배치는 계속 진행)
    - run_emulation.py: UnknownStrategyError 발생 시 거래 시작 전에 종료
"""


class EmulationError(Exception):
    """에뮬레이터 예외 기본 클래스."""


class DateMisalignmentError(EmulationError):
    """지표 스냅샷 또는 지표 계열 간 날짜가 서로 맞지 않음."""

    def __init__(self, symbol: str, message: str):
        self.symbol = symbol
        super().__init__(f"{symbol}: {message}")


class UnknownStrategyError(EmulationError, ValueError):
    """등록되지 않은 전략 이름."""

    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = available
        super().__init__(f"알 수 없는 전략: '{name}'. 사용 가능: {', '.join(available)}")
