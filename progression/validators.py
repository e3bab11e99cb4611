"""
설정 검증

엔진은 잘못된 설정에서도 결정적으로 동작하지만(등급 판정은 예외를 던지지 않음),
관리자가 저장하기 전에 문제를 보고해야 한다.

- 기준표: 디비전 내 중복 등급, 등급 순서와 어긋나는 기준값, 0 이하 기준값
- 디비전: 나이 구간 겹침 (경고만, 매칭은 sort_order가 가장 낮은 디비전)
- 챌린지: 도메인 비율 범위/합계
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from loguru import logger

from .divisions import Division
from .exceptions import InvalidGradeConfiguration
from .grading import Grade, GradingType
from .models import Challenge
from .ranks import Rank
from .schemas import ValidationIssue, ValidationResult, ValidationSeverity


def _result(errors: List[ValidationIssue], warnings: List[ValidationIssue]) -> ValidationResult:
    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        validated_at=datetime.now()
    )


class ConfigValidator:
    """관리자 설정 검증기"""

    def validate_grades(
        self,
        grades: Iterable[Grade],
        grading_type: GradingType = GradingType.REPS
    ) -> ValidationResult:
        """
        기준표 검증

        디비전별로 묶어서 등급이 오를수록 기준이 엄격해지는지 확인한다.
        TIME은 기준값이 줄어들어야 하고, 나머지는 늘어나야 한다.
        """
        errors = []
        warnings = []
        lower_is_better = GradingType(grading_type).lower_is_better

        by_division: Dict[Optional[str], List[Grade]] = {}
        for grade in grades:
            by_division.setdefault(grade.division_id, []).append(grade)

        for division_id, division_grades in by_division.items():
            seen = set()
            for grade in division_grades:
                rank = Rank.parse(grade.rank)
                if rank in seen:
                    errors.append(ValidationIssue(
                        error_type="DUPLICATE_RANK",
                        severity=ValidationSeverity.HIGH,
                        message=f"디비전 {division_id}에 {rank} 기준이 중복되었습니다",
                        field="rank",
                        value=rank.value,
                        suggestion="등급별 기준은 하나만 둘 수 있습니다"
                    ))
                seen.add(rank)

                if grade.target_value <= 0 and GradingType(grading_type) is not GradingType.PASS_FAIL:
                    errors.append(ValidationIssue(
                        error_type="NON_POSITIVE_TARGET",
                        severity=ValidationSeverity.HIGH,
                        message=f"기준값은 양수여야 합니다: {rank}={grade.target_value}",
                        field="target_value",
                        value=grade.target_value,
                    ))

            ordered = sorted(division_grades, key=lambda g: Rank.parse(g.rank).index)
            for easier, harder in zip(ordered, ordered[1:]):
                if Rank.parse(easier.rank) == Rank.parse(harder.rank):
                    continue
                if lower_is_better:
                    monotone = harder.target_value < easier.target_value
                else:
                    monotone = harder.target_value > easier.target_value
                if not monotone:
                    errors.append(ValidationIssue(
                        error_type="NON_MONOTONE_CURVE",
                        severity=ValidationSeverity.HIGH,
                        message=(
                            f"디비전 {division_id}: {harder.rank}({harder.target_value})가 "
                            f"{easier.rank}({easier.target_value})보다 엄격하지 않습니다"
                        ),
                        field="target_value",
                        value=harder.target_value,
                        suggestion="낮을수록 좋은 기록(TIME)인지 확인하세요" if not lower_is_better else None
                    ))

        if errors:
            logger.warning(f"기준표 검증 실패: {len(errors)}건")
        return _result(errors, warnings)

    def check_grades(self, grades: Iterable[Grade], grading_type: GradingType = GradingType.REPS) -> None:
        """기준표가 잘못되면 InvalidGradeConfiguration 발생 (관리자 저장 경로용)"""
        result = self.validate_grades(grades, grading_type)
        if not result.is_valid:
            first = result.errors[0]
            raise InvalidGradeConfiguration(first.message)

    def validate_divisions(self, divisions: Iterable[Division]) -> ValidationResult:
        """
        디비전 검증

        같은 성별(또는 성별 무관)에서 나이 구간이 겹치면 경고.
        매칭은 sort_order가 가장 낮은 디비전을 선택한다.
        """
        errors = []
        warnings = []
        active = sorted((d for d in divisions if d.is_active), key=lambda d: d.sort_order)

        for d in active:
            if d.age_min is not None and d.age_max is not None and d.age_min > d.age_max:
                errors.append(ValidationIssue(
                    error_type="INVALID_AGE_RANGE",
                    severity=ValidationSeverity.HIGH,
                    message=f"{d.name}: age_min({d.age_min}) > age_max({d.age_max})",
                    field="age_min",
                    value=d.age_min,
                ))

        for i, a in enumerate(active):
            for b in active[i + 1:]:
                if not _genders_overlap(a.gender, b.gender):
                    continue
                if _ages_overlap(a, b):
                    warnings.append(ValidationIssue(
                        error_type="OVERLAPPING_DIVISIONS",
                        severity=ValidationSeverity.MEDIUM,
                        message=f"디비전 구간이 겹칩니다: {a.name} / {b.name} ({a.name} 우선)",
                        field="age_min",
                        suggestion="나이 구간 또는 sort_order를 확인하세요"
                    ))

        if warnings:
            logger.warning(f"디비전 겹침 {len(warnings)}건")
        return _result(errors, warnings)

    def validate_challenge_weights(self, challenge: Challenge) -> ValidationResult:
        """챌린지 도메인 비율 검증"""
        errors = []
        warnings = []

        if challenge.tertiary is not None and challenge.secondary is None:
            errors.append(ValidationIssue(
                error_type="TERTIARY_WITHOUT_SECONDARY",
                severity=ValidationSeverity.HIGH,
                message=f"{challenge.name}: 보조 도메인 없이 3차 도메인이 설정되었습니다",
                field="tertiary",
            ))

        weights = [w for w in challenge.weights if w is not None]
        for weight in weights:
            if not 0 < weight.percent <= 100:
                errors.append(ValidationIssue(
                    error_type="PERCENT_OUT_OF_RANGE",
                    severity=ValidationSeverity.HIGH,
                    message=f"{challenge.name}: {weight.domain_id} 비율 {weight.percent}%",
                    field="percent",
                    value=weight.percent,
                ))

        total = sum(w.percent for w in weights)
        if total > 100:
            errors.append(ValidationIssue(
                error_type="PERCENT_SUM_EXCEEDED",
                severity=ValidationSeverity.CRITICAL,
                message=f"{challenge.name}: 비율 합계 {total}% > 100%",
                field="percent",
                value=total,
            ))
        elif total < 100:
            warnings.append(ValidationIssue(
                error_type="PERCENT_SUM_UNDER",
                severity=ValidationSeverity.LOW,
                message=f"{challenge.name}: 비율 합계 {total}% (기본 XP 일부만 분배됨)",
                field="percent",
                value=total,
            ))

        return _result(errors, warnings)


def _genders_overlap(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return True
    return a.lower() == b.lower()


def _ages_overlap(a: Division, b: Division) -> bool:
    a_min = a.age_min if a.age_min is not None else float("-inf")
    a_max = a.age_max if a.age_max is not None else float("inf")
    b_min = b.age_min if b.age_min is not None else float("-inf")
    b_max = b.age_max if b.age_max is not None else float("inf")
    return a_min <= b_max and b_min <= a_max
