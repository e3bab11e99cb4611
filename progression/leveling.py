"""
XP 원장 & 레벨링

- 서브레벨 임계값은 등급 문자별 고정 (RankTables.xp_per_sublevel)
- 임계값을 넘으면 서브레벨 +1, 나머지는 이월 (큰 보상은 반복 적용)
- 서브레벨 9에서는 등급 문자가 자동으로 오르지 않으며 추가 XP는 banked_xp로 적립
- apply_xp는 순수 함수이며 승급 조건(breakthrough)을 조회하지 않는다
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from loguru import logger

from .ranks import (
    DEFAULT_RANK_TABLES,
    MAX_SUBLEVEL,
    RANKS,
    Rank,
    RankTables,
    format_level,
    to_numeric_level,
)


class XPSource(str, Enum):
    """XP 출처"""
    CHALLENGE = "CHALLENGE"
    TRAINING = "TRAINING"
    COMPETITION = "COMPETITION"
    EVENT = "EVENT"
    BONUS = "BONUS"
    ADMIN = "ADMIN"


@dataclass
class DomainLevel:
    """선수 × 도메인 레벨"""
    athlete_id: str
    domain_id: str
    letter: Rank = Rank.F
    sublevel: int = 0
    current_xp: int = 0                 # 다음 서브레벨까지 진행 XP
    banked_xp: int = 0                  # 서브레벨 9에서 적립된 XP
    breakthrough_ready: bool = False
    breakthrough_achieved_at: Optional[datetime] = None

    def __post_init__(self):
        self.letter = Rank.parse(self.letter)
        if not 0 <= self.sublevel <= MAX_SUBLEVEL:
            raise ValueError(f"서브레벨 범위 오류: {self.sublevel}")
        if self.current_xp < 0 or self.banked_xp < 0:
            raise ValueError("XP는 음수일 수 없습니다")

    @classmethod
    def initial(cls, athlete_id: str, domain_id: str) -> "DomainLevel":
        """첫 XP 지급 시 생성되는 기본 레벨 (F0)"""
        return cls(athlete_id=athlete_id, domain_id=domain_id)

    @property
    def numeric_level(self) -> int:
        return to_numeric_level(self.letter, self.sublevel)

    @property
    def is_capped(self) -> bool:
        """현재 등급의 마지막 서브레벨 도달 여부"""
        return self.sublevel == MAX_SUBLEVEL

    @property
    def label(self) -> str:
        return format_level(self.letter, self.sublevel)


@dataclass
class XPTransaction:
    """XP 거래 기록 (추가 전용 감사 로그)"""
    athlete_id: str
    domain_id: str
    amount: int
    source: XPSource
    source_id: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class LevelResult:
    """XP 적용 결과"""
    new_level: DomainLevel
    previous_level: DomainLevel
    leveled_up: bool
    amount: int
    banked: int = 0                     # 이번 적용으로 적립된 XP
    consumed: int = 0                   # 서브레벨 상승에 소모된 XP 합계

    @property
    def sublevels_gained(self) -> int:
        return self.new_level.numeric_level - self.previous_level.numeric_level


def apply_xp(
    level: DomainLevel,
    amount: int,
    tables: RankTables = DEFAULT_RANK_TABLES
) -> LevelResult:
    """
    도메인 레벨에 XP 적용 (입력 객체는 변경하지 않음)

    Args:
        level: 현재 도메인 레벨
        amount: 지급 XP (0 이상)
        tables: XP 테이블

    Returns:
        LevelResult (new_level, previous_level, leveled_up ...)
    """
    if amount < 0:
        raise ValueError(f"XP 지급량은 음수일 수 없습니다: {amount}")

    previous = replace(level)
    threshold = tables.sublevel_xp(level.letter)

    sublevel = level.sublevel
    current_xp = level.current_xp
    banked_xp = level.banked_xp
    consumed = 0
    banked = 0

    if sublevel >= MAX_SUBLEVEL:
        banked = amount
    else:
        current_xp += amount
        while sublevel < MAX_SUBLEVEL and current_xp >= threshold:
            current_xp -= threshold
            consumed += threshold
            sublevel += 1
        if sublevel >= MAX_SUBLEVEL and current_xp > 0:
            # 9 도달 후 남은 XP는 적립
            banked = current_xp
            current_xp = 0

    banked_xp += banked
    new_level = replace(
        level,
        sublevel=sublevel,
        current_xp=current_xp,
        banked_xp=banked_xp,
    )
    leveled_up = new_level.numeric_level > previous.numeric_level

    logger.debug(
        f"XP 적용: {previous.label} +{amount} → {new_level.label} "
        f"(current={current_xp}, banked={banked_xp})"
    )

    return LevelResult(
        new_level=new_level,
        previous_level=previous,
        leveled_up=leveled_up,
        amount=amount,
        banked=banked,
        consumed=consumed,
    )


def level_from_total_xp(
    total_xp: int,
    tables: RankTables = DEFAULT_RANK_TABLES
) -> Tuple[Rank, int]:
    """
    누적 XP가 의미하는 (등급, 서브레벨) - 승급 게이트를 무시한 이론값

    감사/표시용이며 DomainLevel 갱신에는 사용하지 않는다.
    """
    for rank in reversed(RANKS):
        start = tables.cumulative_xp_to_rank(rank)
        if total_xp >= start:
            sublevel = min(MAX_SUBLEVEL, (total_xp - start) // tables.sublevel_xp(rank))
            return rank, sublevel
    return Rank.F, 0

