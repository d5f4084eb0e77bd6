"""
로깅 모듈.

[ 역할 ]
    에뮬레이션 로그 설정. 매수/매도 실행 내역, 시그널, 최종 리포트가 모두 로그로 출력된다.
    콘솔은 사람이 읽는 거래 내역이므로 메시지만, 파일은 시각/레벨/로거 이름까지 기록.

[ 로그 파일 위치 ]
    {log_dir}/{name}_{run_tag}_{YYYYMMDD}.log
    (예: logs/trade_emulator_MACD_20210104.log)

[ 호출하는 곳 ]
    - run_emulation.py, scripts/update_data.py에서 setup_logger() 호출
    - 각 모듈은 logging.getLogger("trade_emulator.<영역>") 사용 → 이 로거로 전파
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"


def setup_logger(
    name: str = "trade_emulator",
    level: str = "INFO",
    log_dir: Optional[str] = "logs",
    run_tag: str = "",
    console: bool = True,
) -> logging.Logger:
    """로거 설정. 파일 핸들러(실행별) + 콘솔 핸들러 등록.

    Args:
        name: 루트 로거 이름 (하위 모듈 로거가 전파되는 대상)
        level: 로그 레벨 ("DEBUG", "INFO", ...)
        log_dir: 로그 디렉토리. None이면 파일 로그 없음
        run_tag: 파일 이름에 붙일 실행 구분자 (예: 전략 이름)
        console: 콘솔 출력 여부
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    if logger.handlers:
        return logger

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        today = datetime.now().strftime("%Y%m%d")
        stem = f"{name}_{run_tag}_{today}" if run_tag else f"{name}_{today}"
        file_handler = logging.FileHandler(log_path / f"{stem}.log", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console_handler)

    # 상위(root) 로거로 중복 출력하지 않음
    logger.propagate = False
    return logger
