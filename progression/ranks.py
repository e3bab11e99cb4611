"""
등급(Rank) 체계 및 공용 상수 테이블

등급 문자 & 숫자 값:
| 등급 | 숫자 범위 | 예시    |
|------|-----------|---------|
| F    | 0-9       | F7 = 7  |
| E    | 10-19     | E3 = 13 |
| D    | 20-29     | D5 = 25 |
| C    | 30-39     | C7 = 37 |
| B    | 40-49     | B2 = 42 |
| A    | 50-59     | A0 = 50 |
| S    | 60-69     | S9 = 69 |

XP 테이블은 전역 가변 상태가 아니라 RankTables 인스턴스로 주입한다.
레벨링(leveling)과 승급(breakthrough)은 같은 RankTables를 공유해야 계산이 일치한다.
"""
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union


MAX_SUBLEVEL = 9
SUBLEVELS = list(range(MAX_SUBLEVEL + 1))


class Rank(str, Enum):
    """등급 문자 (F < E < D < C < B < A < S)"""
    F = "F"
    E = "E"
    D = "D"
    C = "C"
    B = "B"
    A = "A"
    S = "S"

    @property
    def index(self) -> int:
        return RANK_INDEX[self]

    @classmethod
    def parse(cls, value: Union[str, "Rank", None]) -> Optional["Rank"]:
        """문자열/None 허용 변환 (소문자, 공백 허용)"""
        if value is None:
            return None
        if isinstance(value, Rank):
            return value
        value = str(value).strip().upper()
        if not value:
            return None
        return cls(value)

    def _cmp_index(self, other) -> Optional[int]:
        if isinstance(other, Rank):
            return other.index
        if isinstance(other, str):
            return Rank(other.strip().upper()).index
        return None

    def __lt__(self, other):
        idx = self._cmp_index(other)
        return NotImplemented if idx is None else self.index < idx

    def __le__(self, other):
        idx = self._cmp_index(other)
        return NotImplemented if idx is None else self.index <= idx

    def __gt__(self, other):
        idx = self._cmp_index(other)
        return NotImplemented if idx is None else self.index > idx

    def __ge__(self, other):
        idx = self._cmp_index(other)
        return NotImplemented if idx is None else self.index >= idx

    def __str__(self) -> str:
        return self.value


RANKS: List[Rank] = list(Rank)
RANK_INDEX: Dict[Rank, int] = {rank: i for i, rank in enumerate(RANKS)}

# 화면 표시용 명칭
RANK_LABELS = {
    Rank.F: "Foundation",
    Rank.E: "Emerging",
    Rank.D: "Developing",
    Rank.C: "Competent",
    Rank.B: "Breakthrough",
    Rank.A: "Advanced",
    Rank.S: "Supreme",
}


# =====================================================
# 숫자 레벨 변환
# =====================================================

def to_numeric_level(letter: Union[Rank, str], sublevel: int) -> int:
    """등급 + 서브레벨 → 숫자 (C7 = 37, D3 = 23)"""
    return Rank.parse(letter).index * 10 + sublevel


def from_numeric_level(numeric: float) -> Tuple[Rank, int]:
    """숫자 → (등급, 서브레벨). 0-69 범위로 보정 (37 = C7, 29 = D9)"""
    clamped = max(0, min(69, int(numeric // 1)))
    return RANKS[clamped // 10], clamped % 10


def format_level(letter: Union[Rank, str], sublevel: int) -> str:
    """표시용 문자열 ("C7", "A0")"""
    return f"{Rank.parse(letter).value}{sublevel}"


def next_rank(rank: Union[Rank, str]) -> Optional[Rank]:
    """다음 등급 (S는 None)"""
    idx = Rank.parse(rank).index
    if idx >= len(RANKS) - 1:
        return None
    return RANKS[idx + 1]


def rank_range(low: Union[Rank, str], high: Union[Rank, str]) -> List[Rank]:
    """low부터 high까지 (양끝 포함) 오름차순. low > high면 빈 리스트"""
    lo = Rank.parse(low).index
    hi = Rank.parse(high).index
    return RANKS[lo:hi + 1]


def sort_ranks(ranks: Iterable[Union[Rank, str]]) -> List[Rank]:
    """중복 제거 + 등급 순 정렬"""
    parsed = {Rank.parse(r) for r in ranks if r}
    return [r for r in RANKS if r in parsed]


# =====================================================
# 상수 테이블
# =====================================================

# 서브레벨(0-9) 하나를 올리는 데 필요한 XP. 등급 완주 XP = 값 × 10
XP_PER_SUBLEVEL = {
    Rank.F: 100,
    Rank.E: 200,
    Rank.D: 400,
    Rank.C: 800,
    Rank.B: 1600,
    Rank.A: 3200,
    Rank.S: 6400,
}

# 챌린지 티어 최초 달성 시 지급 XP (도메인 무관)
XP_PER_TIER = {
    Rank.F: 25,
    Rank.E: 50,
    Rank.D: 75,
    Rank.C: 100,
    Rank.B: 150,
    Rank.A: 200,
    Rank.S: 300,
}


@dataclass(frozen=True)
class BreakthroughRequirement:
    """등급 전환 요구사항 (tier_required 이상으로 challenge_count개 달성)"""
    from_rank: Rank
    to_rank: Rank
    tier_required: Rank
    challenge_count: int


DEFAULT_BREAKTHROUGH_RULES: Tuple[BreakthroughRequirement, ...] = (
    BreakthroughRequirement(Rank.F, Rank.E, Rank.E, 3),
    BreakthroughRequirement(Rank.E, Rank.D, Rank.D, 5),
    BreakthroughRequirement(Rank.D, Rank.C, Rank.C, 7),
    BreakthroughRequirement(Rank.C, Rank.B, Rank.B, 10),
    BreakthroughRequirement(Rank.B, Rank.A, Rank.A, 12),
    BreakthroughRequirement(Rank.A, Rank.S, Rank.S, 15),
)


def _frozen(mapping: Mapping) -> Mapping[Rank, int]:
    return MappingProxyType({Rank.parse(k): int(v) for k, v in mapping.items()})


@dataclass(frozen=True)
class RankTables:
    """엔진에 주입되는 불변 설정 테이블"""
    xp_per_sublevel: Mapping[Rank, int] = field(default_factory=lambda: _frozen(XP_PER_SUBLEVEL))
    xp_per_tier: Mapping[Rank, int] = field(default_factory=lambda: _frozen(XP_PER_TIER))
    default_breakthrough_rules: Tuple[BreakthroughRequirement, ...] = DEFAULT_BREAKTHROUGH_RULES

    def __post_init__(self):
        # dict로 넘겨도 읽기 전용으로 고정
        object.__setattr__(self, "xp_per_sublevel", _frozen(self.xp_per_sublevel))
        object.__setattr__(self, "xp_per_tier", _frozen(self.xp_per_tier))
        object.__setattr__(self, "default_breakthrough_rules", tuple(self.default_breakthrough_rules))

        missing = [r.value for r in RANKS if r not in self.xp_per_sublevel or r not in self.xp_per_tier]
        if missing:
            raise ValueError(f"XP 테이블에 누락된 등급: {missing}")
        if any(v <= 0 for v in self.xp_per_sublevel.values()):
            raise ValueError("서브레벨 XP는 양수여야 합니다")

    def sublevel_xp(self, rank: Union[Rank, str]) -> int:
        return self.xp_per_sublevel[Rank.parse(rank)]

    def tier_xp(self, rank: Union[Rank, str]) -> int:
        return self.xp_per_tier[Rank.parse(rank)]

    def default_rule(self, from_rank: Union[Rank, str]) -> Optional[BreakthroughRequirement]:
        from_rank = Rank.parse(from_rank)
        for rule in self.default_breakthrough_rules:
            if rule.from_rank == from_rank:
                return rule
        return None

    def xp_per_rank(self, rank: Union[Rank, str]) -> int:
        """등급 하나를 완주하는 데 필요한 XP (10 서브레벨)"""
        return self.sublevel_xp(rank) * (MAX_SUBLEVEL + 1)

    def cumulative_xp_to_rank(self, rank: Union[Rank, str]) -> int:
        """F0부터 해당 등급 0까지 누적 XP (E0 = 1000, D0 = 3000 ...)"""
        target = Rank.parse(rank)
        return sum(self.xp_per_rank(r) for r in RANKS[:target.index])


DEFAULT_RANK_TABLES = RankTables()


# =====================================================
# Prime 레벨
# =====================================================

@dataclass(frozen=True)
class PrimeLevel:
    letter: Rank
    sublevel: int
    numeric_value: float


def calculate_prime(domain_levels: Iterable) -> PrimeLevel:
    """
    도메인 레벨들의 평균으로 Prime 레벨 계산

    domain_levels: letter/sublevel 속성을 가진 객체 목록
    """
    levels = list(domain_levels)
    if not levels:
        return PrimeLevel(Rank.F, 0, 0.0)

    total = sum(to_numeric_level(lv.letter, lv.sublevel) for lv in levels)
    average = total / len(levels)
    letter, sublevel = from_numeric_level(average)
    return PrimeLevel(letter, sublevel, average)
