"""
Progression Config - 엔진 실행 설정
"""
import json
from functools import lru_cache
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic_settings import BaseSettings

from .ranks import DEFAULT_RANK_TABLES, RankTables
from .schemas import RankTablesSchema


class ProgressionSettings(BaseSettings):
    """진행 엔진 설정 (환경변수 PROGRESSION_*)"""

    # 로깅
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None          # 지정 시 파일 로그 (10MB 로테이션)

    # XP 테이블 재정의 JSON (없으면 기본 테이블)
    RANK_TABLES_FILE: Optional[str] = None

    # 이벤트 로그 보관 개수
    EVENT_LOG_SIZE: int = 1000

    class Config:
        env_prefix = "PROGRESSION_"
        env_file = ".env"
        extra = "ignore"


@lru_cache()
def get_settings() -> ProgressionSettings:
    return ProgressionSettings()


def load_rank_tables(path: Optional[str] = None) -> RankTables:
    """
    XP 테이블 로드

    path가 없으면 기본 테이블. 파일에 없는 항목도 기본값을 사용한다.
    """
    if not path:
        return DEFAULT_RANK_TABLES

    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"XP 테이블 파일이 없습니다: {path}")

    with open(file_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    tables = RankTablesSchema(**data).to_model(DEFAULT_RANK_TABLES)
    logger.info(f"📦 XP 테이블 로드: {file_path.name}")
    return tables
