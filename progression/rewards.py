"""
티어 보상 계산 & XP 분배

- 챌린지 최소 등급부터 달성 등급까지 아직 받지 않은 티어만 새로 지급
- 티어별 XP 합계(base XP)를 주/보조/3차 도메인에 비율대로 분배
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence, Union

from .ranks import DEFAULT_RANK_TABLES, Rank, RankTables, rank_range, sort_ranks


@dataclass
class XPShare:
    """도메인별 분배 결과"""
    domain_id: str
    percent: float
    amount: int


def compute_new_tiers(
    claimed_tiers: Iterable[Union[Rank, str]],
    min_rank: Union[Rank, str],
    achieved_rank: Optional[Union[Rank, str]]
) -> List[Rank]:
    """
    새로 지급할 티어 (오름차순)

    min_rank ~ achieved_rank 구간에서 claimed_tiers에 없는 등급만 반환.
    달성 등급이 없거나 최소 등급보다 낮으면 빈 리스트.
    """
    if achieved_rank is None:
        return []
    claimed = set(sort_ranks(claimed_tiers))
    return [tier for tier in rank_range(min_rank, achieved_rank) if tier not in claimed]


def merge_claimed_tiers(
    claimed_tiers: Iterable[Union[Rank, str]],
    new_tiers: Iterable[Union[Rank, str]]
) -> List[Rank]:
    """기존 + 신규 티어 합집합 (중복 제거, 등급 순). 줄어들지 않는다"""
    return sort_ranks(list(claimed_tiers) + list(new_tiers))


def base_xp(tiers: Iterable[Union[Rank, str]], tables: RankTables = DEFAULT_RANK_TABLES) -> int:
    """티어별 XP 합계"""
    return sum(tables.tier_xp(tier) for tier in tiers)


def round_half_up(value: float) -> int:
    """0.5는 올림 (음수 없음)"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def distribute_xp(base: int, weights: Sequence) -> List[XPShare]:
    """
    base XP를 도메인 비율대로 분배

    Args:
        base: 분배할 XP
        weights: domain_id/percent 속성을 가진 항목 목록 (주, 보조, 3차).
                 None이거나 비율이 0인 항목은 건너뛴다.

    비율 합계 검증은 설정 단계(validators)에서 한다.
    """
    shares = []
    for weight in weights:
        if weight is None or not weight.domain_id or not weight.percent:
            continue
        amount = round_half_up(base * weight.percent / 100)
        shares.append(XPShare(domain_id=weight.domain_id, percent=weight.percent, amount=amount))
    return shares
