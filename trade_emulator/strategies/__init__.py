"""
전략 모듈.

[ 전략 등록 방식 ]
    @register(StrategyKind.XXX) 데코레이터를 붙이면 STRATEGY_REGISTRY에 자동 등록.
    run_emulation.py에서 이름("MACD", "EMA2" 등)만으로 전략을 찾아 생성한다.
    전략 종류는 core/trading_strategy.py::StrategyKind로 닫혀 있으며,
    실행 시작 시 한 번만 해석된다 (매일 다시 고르지 않음).

[ 새 전략 추가 방법 ]
    1. StrategyKind에 새 이름 추가
    2. 이 디렉토리에 새 .py 파일 생성, TradingStrategy 상속 클래스 작성
    3. @register(StrategyKind.새이름) 데코레이터 추가
"""

from importlib import import_module
from pathlib import Path
from typing import Any

from trade_emulator.core.exceptions import UnknownStrategyError
from trade_emulator.core.trading_strategy import StrategyKind, TradingStrategy

# 전략 종류 → 전략 클래스 매핑
STRATEGY_REGISTRY: dict[StrategyKind, type[TradingStrategy]] = {}


def register(kind: StrategyKind):
    """전략 클래스를 STRATEGY_REGISTRY에 등록하는 데코레이터."""
    def decorator(cls: type[TradingStrategy]):
        STRATEGY_REGISTRY[kind] = cls
        return cls
    return decorator


def resolve_kind(name: str | StrategyKind) -> StrategyKind:
    """이름을 StrategyKind로 변환.

    Raises:
        UnknownStrategyError: 등록되지 않은 전략 이름
    """
    if isinstance(name, StrategyKind):
        kind = name
    else:
        try:
            kind = StrategyKind(name)
        except ValueError:
            raise UnknownStrategyError(name, list_strategies()) from None
    if kind not in STRATEGY_REGISTRY:
        raise UnknownStrategyError(kind.value, list_strategies())
    return kind


def create_strategy(name: str | StrategyKind, params: dict[str, Any] | None = None) -> TradingStrategy:
    """이름으로 전략 인스턴스를 생성.

    Args:
        name: 전략 이름 (예: "MACD", "MACD-Hist", "VIXss")
        params: 전략 파라미터 (각 전략의 DEFAULT_PARAMS를 오버라이드)

    Raises:
        UnknownStrategyError: 등록되지 않은 전략 이름
    """
    kind = resolve_kind(name)
    return STRATEGY_REGISTRY[kind](params=params)


def list_strategies() -> list[str]:
    """등록된 전략 이름 목록 (StrategyKind 선언 순서)."""
    return [kind.value for kind in StrategyKind if kind in STRATEGY_REGISTRY]


def _auto_discover():
    """이 디렉토리의 모든 전략 모듈을 자동 임포트하여 @register가 실행되게 한다."""
    strategies_dir = Path(__file__).parent
    for py_file in strategies_dir.glob("*.py"):
        if py_file.name.startswith("_"):
            continue
        module_name = f"trade_emulator.strategies.{py_file.stem}"
        import_module(module_name)


# 모듈 로드 시 자동 탐색
_auto_discover()
