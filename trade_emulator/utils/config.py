"""
설정 관리 모듈.

[ 역할 ]
    config.yaml (또는 .json) 파일을 파싱하여 Config 객체로 변환.
    전략 파라미터, 에뮬레이션 파라미터, DB/수집 설정, 로깅 설정 등을 통합 관리.

[ 설정 파일 구조 (config.yaml) ]
    emulation:        → EmulationConfig (자금, 매수 한도, 수수료/세율, 손절 등)
    strategy:         → StrategyConfig (전략 이름 + 임계값 오버라이드)
    database:         → DatabaseConfig (ClickHouse 접속 정보, 재시도)
    data_ingestion:   → DataIngestionConfig (수집 시작일, 재시도)
    log_level:        → "INFO" / "DEBUG"
    log_dir:          → 로그 디렉토리 경로

[ 호출하는 곳 ]
    - run_emulation.py, scripts/update_data.py에서 Config.load()로 로드 (.json이면 from_json)
    - 전략 생성 시 config.strategy.params를 전달
    - 엔진 생성 시 config.emulation을 전달
"""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class EmulationConfig:
    """에뮬레이션 설정. config.yaml의 emulation 섹션에 대응.

    거래 비용(transaction_fee)은 건당 고정 금액, 세금은 실현 손익 × tax_rate.
    """
    initial_cash: float = 1_000_000
    min_buy: float = 1000            # 이 금액 미만의 현금으로는 매수하지 않음
    max_buy: float = 5000            # 1회 최대 매수 금액
    transaction_fee: float = 0.0     # 건당 수수료
    tax_rate: float = 0.25           # 실현 손익 대비 세율 (손실에도 적용)
    stop_loss_enabled: bool = False  # 손절/목표가 도달 시 강제 매도
    profit_target_factor: float = 1.5
    red_days_exit: int = 0           # N일 연속 음봉이면 강제 매도 (0이면 비활성)
    low_window_size: int = 20        # 스윙 저점 계산용 최근 종가 개수
    max_workers: int = 8             # 하루 내 종목 동시 평가 스레드 수
    serialize_ledger: bool = True    # 매수/매도를 락으로 직렬화
    symbols: list[str] = field(default_factory=list)  # '*' 지정 시 사용할 종목 목록


@dataclass
class StrategyConfig:
    """전략 설정. config.yaml의 strategy 섹션에 대응.

    각 전략 클래스의 DEFAULT_PARAMS가 기본값 역할을 하므로,
    params에는 오버라이드할 값만 지정하면 된다.
    """
    name: str = "MACD"
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class DatabaseConfig:
    """데이터베이스 설정. config.yaml의 database 섹션에 대응."""
    host: str = "localhost"
    port: int = 8123
    database: str = "default"
    user: str = "default"
    password: str = "password"
    max_retries: int = 5
    backoff_base: float = 0.5
    backoff_cap: float = 10.0


@dataclass
class DataIngestionConfig:
    """데이터 수집 설정. config.yaml의 data_ingestion 섹션에 대응."""
    default_since: str = "2018-01-01"
    max_retries: int = 3
    retry_delay: float = 2.0
    backoff_cap: float = 60.0


@dataclass
class Config:
    """전체 설정. load() (from_yaml() / from_json())로 파일에서 로드."""
    emulation: EmulationConfig = field(default_factory=EmulationConfig)
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    data_ingestion: DataIngestionConfig = field(default_factory=DataIngestionConfig)
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """YAML 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls._from_dict(data or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "Config":
        """JSON 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls._from_dict(data)

    @classmethod
    def load(cls, path: str | Path) -> "Config":
        """확장자(.json / 그 외 YAML)에 맞춰 로드."""
        path = Path(path)
        if path.suffix.lower() == ".json":
            return cls.from_json(path)
        return cls.from_yaml(path)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """딕셔너리에서 Config 생성. 알 수 없는 키는 무시."""
        emulation_data = data.get("emulation") or {}
        strategy_data = data.get("strategy") or {}
        database_data = data.get("database") or {}
        data_ingestion_data = data.get("data_ingestion") or {}

        # strategy 섹션 파싱: name은 직접 필드, params가 없으면 나머지를 params로
        strategy_name = strategy_data.get("name", "MACD")
        if "params" in strategy_data:
            strategy_params = strategy_data["params"] or {}
        else:
            strategy_params = {k: v for k, v in strategy_data.items() if k != "name"}
        strategy = StrategyConfig(name=strategy_name, params=strategy_params)

        emulation = EmulationConfig(**{
            k: v for k, v in emulation_data.items()
            if k in EmulationConfig.__dataclass_fields__
        })
        database = DatabaseConfig(**{
            k: v for k, v in database_data.items()
            if k in DatabaseConfig.__dataclass_fields__
        })
        data_ingestion = DataIngestionConfig(**{
            k: v for k, v in data_ingestion_data.items()
            if k in DataIngestionConfig.__dataclass_fields__
        })

        return cls(
            emulation=emulation,
            strategy=strategy,
            database=database,
            data_ingestion=data_ingestion,
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir", "logs"),
        )

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환."""
        return asdict(self)

    def save_yaml(self, path: str | Path) -> None:
        """YAML 파일로 저장."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, allow_unicode=True, default_flow_style=False)
