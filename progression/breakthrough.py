"""
승급(Breakthrough) 시스템

한 등급 문자에서 다음 문자로 넘어가려면 승급 조건을 만족해야 한다.
- 해당 도메인 챌린지에서 [tier_required] 이상을 [challenge_count]개 달성

예: Strength F → E 는 Strength 챌린지 3개에서 E 티어 이상 달성

기본 조건 (디비전/도메인별 규칙으로 재정의 가능):
| From → To | 필요 티어 | 챌린지 수 |
|-----------|-----------|-----------|
| F → E     | E         | 3         |
| E → D     | D         | 5         |
| D → C     | C         | 7         |
| C → B     | B         | 10        |
| B → A     | A         | 12        |
| A → S     | S         | 15        |

규칙 우선순위: 디비전 전용 규칙 > 도메인 공통 규칙 > 기본 테이블
조건 조회(can_breakthrough)는 읽기 전용이며, 실제 승급은 execute_breakthrough로만 일어난다.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from loguru import logger

from .leveling import DomainLevel
from .models import Challenge, Submission
from .ranks import (
    DEFAULT_RANK_TABLES,
    MAX_SUBLEVEL,
    BreakthroughRequirement,
    Rank,
    RankTables,
    next_rank,
)


@dataclass
class BreakthroughRule:
    """관리자가 작성하는 승급 규칙"""
    domain_id: str
    from_rank: Rank
    to_rank: Rank
    tier_required: Rank
    challenge_count: int
    division_id: Optional[str] = None   # None이면 도메인 공통 규칙
    is_active: bool = True

    def __post_init__(self):
        self.from_rank = Rank.parse(self.from_rank)
        self.to_rank = Rank.parse(self.to_rank)
        self.tier_required = Rank.parse(self.tier_required)

    def to_requirement(self) -> BreakthroughRequirement:
        return BreakthroughRequirement(
            from_rank=self.from_rank,
            to_rank=self.to_rank,
            tier_required=self.tier_required,
            challenge_count=self.challenge_count,
        )


@dataclass
class QualifyingChallenge:
    submission_id: str
    challenge_id: str
    challenge_name: str
    achieved_tier: Rank


@dataclass
class BreakthroughProgress:
    """승급 진행 현황 (진행 바 표시용)"""
    from_rank: Rank
    to_rank: Rank
    tier_required: Rank
    challenge_count: int
    current_progress: int
    qualifying_challenges: List[QualifyingChallenge] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.current_progress >= self.challenge_count

    @property
    def message(self) -> str:
        return f"{self.current_progress}/{self.challenge_count} challenges completed"


# =====================================================
# 규칙 조회 (우선순위 체인)
# =====================================================

# (rules, domain_id, from_rank, to_rank, division_id, tables) -> 요구사항 또는 None
RuleLookup = Callable[
    [Sequence[BreakthroughRule], str, Rank, Rank, Optional[str], RankTables],
    Optional[BreakthroughRequirement]
]


def _find_rule(rules, domain_id, from_rank, to_rank, division_id) -> Optional[BreakthroughRule]:
    for rule in rules:
        if (
            rule.is_active
            and rule.domain_id == domain_id
            and rule.from_rank == from_rank
            and rule.to_rank == to_rank
            and rule.division_id == division_id
        ):
            return rule
    return None


def division_rule_lookup(rules, domain_id, from_rank, to_rank, division_id, tables):
    """디비전 전용 규칙"""
    if division_id is None:
        return None
    rule = _find_rule(rules, domain_id, from_rank, to_rank, division_id)
    return rule.to_requirement() if rule else None


def domain_rule_lookup(rules, domain_id, from_rank, to_rank, division_id, tables):
    """도메인 공통 규칙 (division_id 없음)"""
    rule = _find_rule(rules, domain_id, from_rank, to_rank, None)
    return rule.to_requirement() if rule else None


def default_rule_lookup(rules, domain_id, from_rank, to_rank, division_id, tables):
    """기본 테이블"""
    rule = tables.default_rule(from_rank)
    if rule and rule.to_rank == to_rank:
        return rule
    return None


DEFAULT_RULE_LOOKUPS: List[RuleLookup] = [
    division_rule_lookup,
    domain_rule_lookup,
    default_rule_lookup,
]


def get_breakthrough_rule(
    rules: Sequence[BreakthroughRule],
    domain_id: str,
    from_rank: Rank,
    division_id: Optional[str] = None,
    tables: RankTables = DEFAULT_RANK_TABLES,
    lookups: Sequence[RuleLookup] = DEFAULT_RULE_LOOKUPS
) -> Optional[BreakthroughRequirement]:
    """
    등급 전환 규칙 조회

    lookups 순서대로 조회해 처음 찾은 규칙을 반환한다. S 등급이면 None.
    """
    from_rank = Rank.parse(from_rank)
    to_rank = next_rank(from_rank)
    if to_rank is None:
        return None

    for lookup in lookups:
        requirement = lookup(rules, domain_id, from_rank, to_rank, division_id, tables)
        if requirement is not None:
            logger.debug(
                f"승급 규칙: {domain_id} {from_rank}→{to_rank} "
                f"({lookup.__name__}) {requirement.challenge_count}개 @ {requirement.tier_required}"
            )
            return requirement
    return None


# =====================================================
# 조건 집계
# =====================================================

def find_qualifying_challenges(
    submissions: Iterable[Submission],
    challenges: Dict[str, Challenge],
    athlete_id: str,
    domain_id: str,
    min_tier: Rank
) -> List[QualifyingChallenge]:
    """
    승급 조건을 충족하는 제출물 목록

    - 승인된 제출물
    - 활성 챌린지이며 주 도메인이 일치 (보조/3차 도메인은 제외)
    - 달성 등급이 min_tier 이상 (S 달성은 D 조건도 충족)
    """
    min_tier = Rank.parse(min_tier)
    seen = set()
    qualifying = []

    for submission in submissions:
        if submission.id in seen:
            continue
        if submission.athlete_id != athlete_id or not submission.is_approved:
            continue
        if submission.achieved_rank is None or submission.achieved_rank < min_tier:
            continue

        challenge = challenges.get(submission.challenge_id)
        if challenge is None or not challenge.is_active:
            continue
        if challenge.primary_domain_id != domain_id:
            continue

        seen.add(submission.id)
        qualifying.append(QualifyingChallenge(
            submission_id=submission.id,
            challenge_id=challenge.id,
            challenge_name=challenge.name,
            achieved_tier=submission.achieved_rank,
        ))

    return qualifying


def count_qualifying_challenges(
    submissions: Iterable[Submission],
    challenges: Dict[str, Challenge],
    athlete_id: str,
    domain_id: str,
    min_tier: Rank
) -> int:
    return len(find_qualifying_challenges(submissions, challenges, athlete_id, domain_id, min_tier))


def get_breakthrough_progress(
    rules: Sequence[BreakthroughRule],
    submissions: Iterable[Submission],
    challenges: Dict[str, Challenge],
    athlete_id: str,
    domain_id: str,
    current_rank: Rank,
    division_id: Optional[str] = None,
    tables: RankTables = DEFAULT_RANK_TABLES
) -> Optional[BreakthroughProgress]:
    """현재 등급에서 다음 등급까지의 진행 현황. S 등급이면 None"""
    rule = get_breakthrough_rule(rules, domain_id, current_rank, division_id, tables)
    if rule is None:
        return None

    qualifying = find_qualifying_challenges(
        submissions, challenges, athlete_id, domain_id, rule.tier_required
    )
    return BreakthroughProgress(
        from_rank=rule.from_rank,
        to_rank=rule.to_rank,
        tier_required=rule.tier_required,
        challenge_count=rule.challenge_count,
        current_progress=len(qualifying),
        qualifying_challenges=qualifying,
    )


def can_breakthrough(
    rules: Sequence[BreakthroughRule],
    submissions: Iterable[Submission],
    challenges: Dict[str, Challenge],
    athlete_id: str,
    domain_id: str,
    current_rank: Rank,
    division_id: Optional[str] = None,
    tables: RankTables = DEFAULT_RANK_TABLES
) -> bool:
    progress = get_breakthrough_progress(
        rules, submissions, challenges, athlete_id, domain_id,
        current_rank, division_id, tables
    )
    return progress.is_complete if progress else False


# =====================================================
# 승급 실행 (순수 계산)
# =====================================================

def execute_breakthrough(
    level: DomainLevel,
    tables: RankTables = DEFAULT_RANK_TABLES,
    now: Optional[datetime] = None
) -> DomainLevel:
    """
    등급 문자를 한 단계 올리고 적립 XP를 새 등급의 서브레벨로 전환

    new_sublevel = min(9, banked_xp // 새 등급 서브레벨 XP)
    남은 XP는 current_xp가 아닌 banked_xp에 그대로 남는다.
    current_xp가 새 등급 서브레벨 XP 이상이거나 9에 도달하면 적립분으로 옮긴다.

    조건 확인은 호출자가 먼저 해야 한다. S 등급이면 ValueError.
    """
    new_rank = next_rank(level.letter)
    if new_rank is None:
        raise ValueError(f"최고 등급에서는 승급할 수 없습니다: {level.label}")

    xp_per_sublevel = tables.sublevel_xp(new_rank)
    carried = level.current_xp
    pool = level.banked_xp
    if carried >= xp_per_sublevel:
        pool += carried
        carried = 0

    new_sublevel = min(MAX_SUBLEVEL, pool // xp_per_sublevel)
    remaining = pool - new_sublevel * xp_per_sublevel
    if new_sublevel == MAX_SUBLEVEL:
        remaining += carried
        carried = 0

    return replace(
        level,
        letter=new_rank,
        sublevel=new_sublevel,
        current_xp=carried,
        banked_xp=remaining,
        breakthrough_ready=False,
        breakthrough_achieved_at=now or datetime.now(),
    )
