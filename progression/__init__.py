"""
챌린지 진행(Progression) 엔진 패키지

처리 흐름:
- 등급 판정: 측정값 → 디비전 기준표 → 달성 등급
- 티어 보상: 신규 티어 → 기본 XP → 도메인 비율 분배
- 레벨링: 서브레벨 상승, 9에서 XP 적립
- 승급: 조건 충족 후 명시적으로 등급 문자 상승
"""

from .ranks import (
    Rank,
    RankTables,
    DEFAULT_RANK_TABLES,
    RANK_LABELS,
    BreakthroughRequirement,
    to_numeric_level,
    from_numeric_level,
    format_level,
    next_rank,
    calculate_prime,
)
from .divisions import Division, calculate_age, find_division, find_division_for_athlete
from .grading import Grade, GradingType, resolve_achieved_rank
from .leveling import DomainLevel, LevelResult, XPSource, XPTransaction, apply_xp
from .breakthrough import (
    BreakthroughRule,
    BreakthroughProgress,
    get_breakthrough_rule,
    count_qualifying_challenges,
    can_breakthrough,
    execute_breakthrough,
)
from .rewards import compute_new_tiers, base_xp, distribute_xp, merge_claimed_tiers
from .models import Athlete, Challenge, Domain, DomainWeight, Submission, SubmissionStatus
from .events import EventPublisher, EventType, ProgressionEvent
from .repository import ProgressionRepository, InMemoryRepository
from .service import ProgressionService, AwardResult, BreakthroughResult, XPDiscrepancy
from .validators import ConfigValidator
from .exceptions import (
    ProgressionError,
    NotFoundError,
    AlreadyAtMaxError,
    RequirementsNotMetError,
    InvalidGradeConfiguration,
    SubmissionStateError,
)

__all__ = [
    # Ranks
    "Rank",
    "RankTables",
    "DEFAULT_RANK_TABLES",
    "RANK_LABELS",
    "BreakthroughRequirement",
    "to_numeric_level",
    "from_numeric_level",
    "format_level",
    "next_rank",
    "calculate_prime",
    # Divisions
    "Division",
    "calculate_age",
    "find_division",
    "find_division_for_athlete",
    # Grading
    "Grade",
    "GradingType",
    "resolve_achieved_rank",
    # Leveling
    "DomainLevel",
    "LevelResult",
    "XPSource",
    "XPTransaction",
    "apply_xp",
    # Breakthrough
    "BreakthroughRule",
    "BreakthroughProgress",
    "get_breakthrough_rule",
    "count_qualifying_challenges",
    "can_breakthrough",
    "execute_breakthrough",
    # Rewards
    "compute_new_tiers",
    "base_xp",
    "distribute_xp",
    "merge_claimed_tiers",
    # Models
    "Athlete",
    "Challenge",
    "Domain",
    "DomainWeight",
    "Submission",
    "SubmissionStatus",
    # Events
    "EventPublisher",
    "EventType",
    "ProgressionEvent",
    # Service
    "ProgressionRepository",
    "InMemoryRepository",
    "ProgressionService",
    "AwardResult",
    "BreakthroughResult",
    "XPDiscrepancy",
    "ConfigValidator",
    # Exceptions
    "ProgressionError",
    "NotFoundError",
    "AlreadyAtMaxError",
    "RequirementsNotMetError",
    "InvalidGradeConfiguration",
    "SubmissionStateError",
]
