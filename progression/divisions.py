"""
디비전(성별 + 연령대) 매칭

등급 기준표 조회와 승급 규칙 조회 모두 선수의 디비전을 기준으로 한다.
디비전 구성은 관리자가 겹치지 않게 관리한다고 가정하며, 여기서는 검증하지 않는다.
(겹침 검사는 validators.ConfigValidator.validate_divisions 참고)
"""
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from loguru import logger


@dataclass
class Division:
    """디비전"""
    id: str
    name: str
    gender: Optional[str] = None      # None이면 성별 무관
    age_min: Optional[int] = None     # None이면 하한 없음
    age_max: Optional[int] = None     # None이면 상한 없음
    sort_order: int = 0
    is_active: bool = True

    def matches_gender(self, gender: Optional[str]) -> bool:
        """성별 일치 여부 (대소문자, 앞뒤 공백 무시)"""
        if self.gender is None:
            return True
        if gender is None:
            return False
        return self.gender.strip().lower() == gender.strip().lower()

    def contains_age(self, age: int) -> bool:
        """연령 포함 여부 (양끝 포함)"""
        if self.age_min is not None and age < self.age_min:
            return False
        if self.age_max is not None and age > self.age_max:
            return False
        return True


def calculate_age(date_of_birth: date, today: Optional[date] = None) -> int:
    """만 나이 계산 (올해 생일이 지나지 않았으면 1 감소)"""
    today = today or date.today()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def is_minor(date_of_birth: date, today: Optional[date] = None) -> bool:
    """미성년자(18세 미만) 여부"""
    return calculate_age(date_of_birth, today) < 18


def find_division(
    divisions: Iterable[Division],
    gender: Optional[str],
    age: int
) -> Optional[Division]:
    """
    성별/나이에 맞는 활성 디비전 검색

    여러 개가 일치하면 sort_order가 가장 낮은 디비전을 반환한다.

    Returns:
        일치하는 디비전, 없으면 None
    """
    candidates: List[Division] = sorted(
        (d for d in divisions if d.is_active),
        key=lambda d: d.sort_order
    )

    for division in candidates:
        if division.matches_gender(gender) and division.contains_age(age):
            return division

    logger.debug(f"일치하는 디비전 없음: gender={gender}, age={age}")
    return None


def find_division_for_athlete(
    divisions: Iterable[Division],
    athlete,
    today: Optional[date] = None
) -> Optional[Division]:
    """선수(gender, date_of_birth 속성)의 디비전 검색. 생년월일이 없으면 None"""
    if athlete.date_of_birth is None:
        return None
    age = calculate_age(athlete.date_of_birth, today)
    return find_division(divisions, athlete.gender, age)


def format_age_range(age_min: Optional[int], age_max: Optional[int]) -> str:
    """연령 범위 표시 문자열"""
    if age_min is None and age_max is None:
        return "All ages"
    if age_min is None:
        return f"Under {age_max + 1}"
    if age_max is None:
        return f"{age_min}+"
    return f"{age_min}-{age_max}"
