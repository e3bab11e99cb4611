"""
등급 판정 (Grade Resolver)

측정값(횟수, 시간, 거리 등)을 디비전별 기준표와 비교해 달성 등급을 계산한다.
- TIME: 낮을수록 좋음
- 그 외: 높을수록 좋음

기준을 하나도 만족하지 못하는 것은 정상적인 결과이며 None을 반환한다.
"""
from dataclasses import dataclass
from datetime import date
from enum import Enum
from numbers import Real
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from loguru import logger

from .divisions import Division, find_division_for_athlete
from .ranks import Rank


class GradingType(str, Enum):
    """채점 방식"""
    PASS_FAIL = "PASS_FAIL"
    REPS = "REPS"
    TIME = "TIME"
    DISTANCE = "DISTANCE"
    TIMED_REPS = "TIMED_REPS"
    WEIGHTED_REPS = "WEIGHTED_REPS"

    @property
    def lower_is_better(self) -> bool:
        return self is GradingType.TIME


@dataclass
class Grade:
    """디비전별 등급 기준값"""
    rank: Rank
    target_value: float
    division_id: Optional[str] = None


def _is_lower_better(grading_type: Union[GradingType, str, None]) -> bool:
    if grading_type is None:
        return False
    return GradingType(grading_type) is GradingType.TIME


def sort_grades(
    grades: Iterable[Grade],
    grading_type: Union[GradingType, str, None]
) -> List[Grade]:
    """쉬운 기준 → 어려운 기준 순 정렬"""
    if _is_lower_better(grading_type):
        # 시간: 큰 값이 쉬움
        return sorted(grades, key=lambda g: g.target_value, reverse=True)
    return sorted(grades, key=lambda g: g.target_value)


def _is_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and value == value


def usable_grades(grades: Iterable[Grade]) -> List[Tuple[Rank, Grade]]:
    """등급을 해석할 수 없거나 기준값이 숫자가 아닌 행 제외"""
    usable = []
    for grade in grades:
        try:
            rank = Rank.parse(grade.rank)
        except ValueError:
            rank = None
        if rank is None or not _is_number(grade.target_value):
            logger.warning(f"잘못된 등급 기준 무시: rank={grade.rank!r}, target={grade.target_value!r}")
            continue
        usable.append((rank, grade))
    return usable


def meets_target(
    achieved_value: float,
    target_value: float,
    grading_type: Union[GradingType, str, None]
) -> bool:
    """기준 충족 여부 (같은 값은 충족)"""
    if _is_lower_better(grading_type):
        return achieved_value <= target_value
    return achieved_value >= target_value


def resolve_achieved_rank(
    achieved_value: float,
    grades: Sequence[Grade],
    grading_type: Union[GradingType, str, None]
) -> Optional[Rank]:
    """
    측정값 → 달성 등급

    쉬운 기준부터 순회하면서 충족하는 가장 어려운 기준의 등급을 반환한다.

    Args:
        achieved_value: 측정값
        grades: 한 디비전의 기준표
        grading_type: 채점 방식

    Returns:
        달성 등급, 유효한 기준이 없거나 하나도 충족하지 못하면 None
    """
    if not _is_number(achieved_value):
        return None

    usable = usable_grades(grades)
    usable.sort(key=lambda item: item[1].target_value, reverse=_is_lower_better(grading_type))

    achieved_rank: Optional[Rank] = None
    for rank, grade in usable:
        if meets_target(achieved_value, grade.target_value, grading_type):
            achieved_rank = rank

    return achieved_rank


def grades_for_division(grades: Iterable[Grade], division: Optional[Division]) -> List[Grade]:
    """디비전 기준표만 추출 (디비전이 없으면 빈 리스트)"""
    if division is None:
        return []
    return [g for g in grades if g.division_id == division.id]


def resolve_for_athlete(
    achieved_value: Optional[float],
    grades: Iterable[Grade],
    grading_type: Union[GradingType, str, None],
    divisions: Iterable[Division],
    athlete,
    today: Optional[date] = None
) -> Optional[Rank]:
    """선수 디비전 기준표로 달성 등급 계산"""
    if achieved_value is None:
        return None

    division = find_division_for_athlete(divisions, athlete, today)
    if division is None:
        logger.debug(f"디비전 없음 - 등급 판정 생략: athlete={getattr(athlete, 'id', None)}")
        return None

    division_grades = grades_for_division(grades, division)
    rank = resolve_achieved_rank(achieved_value, division_grades, grading_type)
    logger.debug(f"등급 판정: value={achieved_value}, division={division.name}, rank={rank}")
    return rank
