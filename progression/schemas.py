"""
설정 데이터 스키마 정의

Pydantic 모델로 관리자 입력(챌린지, 기준표, 디비전, 승급 규칙, XP 테이블)을 검증하고
엔진 dataclass로 변환한다.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from enum import Enum

from .breakthrough import BreakthroughRule
from .divisions import Division
from .grading import Grade, GradingType
from .models import Athlete, Challenge, Domain, DomainWeight, SubmissionStatus
from .ranks import (
    DEFAULT_BREAKTHROUGH_RULES,
    RANKS,
    BreakthroughRequirement,
    Rank,
    RankTables,
    next_rank,
)


class ValidationSeverity(str, Enum):
    """검증 오류 심각도"""
    CRITICAL = "critical"   # 사용 불가
    HIGH = "high"           # 사용 불가, 수동 검토 필요
    MEDIUM = "medium"       # 사용 가능, 경고 표시
    LOW = "low"             # 사용 가능, 로그만
    INFO = "info"           # 정보성


class ValidationIssue(BaseModel):
    """검증 오류"""
    error_type: str = Field(..., description="오류 유형")
    severity: ValidationSeverity = Field(..., description="심각도")
    message: str = Field(..., description="오류 메시지")
    field: Optional[str] = Field(None, description="관련 필드")
    value: Optional[Any] = Field(None, description="문제가 된 값")
    suggestion: Optional[str] = Field(None, description="해결 제안")


class ValidationResult(BaseModel):
    """검증 결과"""
    is_valid: bool = Field(default=True, description="최종 유효성")
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    validated_at: datetime = Field(default_factory=datetime.now)

    @property
    def has_critical_errors(self) -> bool:
        return any(e.severity in [ValidationSeverity.CRITICAL, ValidationSeverity.HIGH] for e in self.errors)

    @property
    def can_use(self) -> bool:
        """엔진에 적용 가능 여부"""
        return not self.has_critical_errors

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        errors = self.errors + other.errors
        return ValidationResult(
            is_valid=len(errors) == 0,
            errors=errors,
            warnings=self.warnings + other.warnings,
        )


# ==================== 핵심 스키마 ====================

class AthleteSchema(BaseModel):
    """선수 스키마"""
    id: str = Field(..., min_length=1, description="선수 ID")
    gender: Optional[str] = Field(None, description="성별 (male/female 등)")
    date_of_birth: Optional[date] = Field(None, description="생년월일")
    display_name: str = Field(default="", description="표시 이름")

    @field_validator("gender")
    @classmethod
    def normalize_gender(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().lower()
        return v or None

    def to_model(self) -> Athlete:
        return Athlete(
            id=self.id,
            gender=self.gender,
            date_of_birth=self.date_of_birth,
            display_name=self.display_name,
        )


class DomainSchema(BaseModel):
    """도메인 스키마"""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    sort_order: int = Field(default=0)
    is_active: bool = Field(default=True)

    def to_model(self) -> Domain:
        return Domain(id=self.id, name=self.name, sort_order=self.sort_order, is_active=self.is_active)


class DomainWeightSchema(BaseModel):
    """챌린지 도메인 비율"""
    domain_id: str = Field(..., min_length=1, description="도메인 ID")
    percent: float = Field(..., ge=1, le=100, description="분배 비율 (%)")

    def to_model(self) -> DomainWeight:
        return DomainWeight(domain_id=self.domain_id, percent=self.percent)


class GradeSchema(BaseModel):
    """등급 기준값"""
    division_id: str = Field(..., min_length=1, description="디비전 ID")
    rank: Rank = Field(..., description="등급 문자")
    target_value: float = Field(..., description="기준값")

    @field_validator("rank", mode="before")
    @classmethod
    def parse_rank(cls, v):
        return Rank.parse(v)

    def to_model(self) -> Grade:
        return Grade(rank=Rank(self.rank), target_value=self.target_value, division_id=self.division_id)


class ChallengeSchema(BaseModel):
    """챌린지 스키마"""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    grading_type: GradingType = Field(default=GradingType.REPS, description="채점 방식")
    min_rank: Rank = Field(default=Rank.F, description="최소 등급")
    primary: DomainWeightSchema = Field(..., description="주 도메인")
    secondary: Optional[DomainWeightSchema] = Field(None, description="보조 도메인")
    tertiary: Optional[DomainWeightSchema] = Field(None, description="3차 도메인")
    grades: List[GradeSchema] = Field(default_factory=list)
    is_active: bool = Field(default=True)

    @field_validator("min_rank", mode="before")
    @classmethod
    def parse_min_rank(cls, v):
        return Rank.parse(v) or Rank.F

    @model_validator(mode="after")
    def validate_weights(self) -> "ChallengeSchema":
        """도메인 비율 검증"""
        if self.tertiary is not None and self.secondary is None:
            raise ValueError("3차 도메인은 보조 도메인이 있을 때만 설정할 수 있습니다")

        weights = [w for w in (self.primary, self.secondary, self.tertiary) if w is not None]
        domain_ids = [w.domain_id for w in weights]
        if len(set(domain_ids)) != len(domain_ids):
            raise ValueError(f"도메인이 중복되었습니다: {domain_ids}")

        total = sum(w.percent for w in weights)
        if total > 100:
            raise ValueError(f"도메인 비율 합계가 100%를 초과합니다: {total}")
        return self

    def to_model(self) -> Challenge:
        return Challenge(
            id=self.id,
            name=self.name,
            primary=self.primary.to_model(),
            grading_type=GradingType(self.grading_type),
            min_rank=Rank(self.min_rank),
            secondary=self.secondary.to_model() if self.secondary else None,
            tertiary=self.tertiary.to_model() if self.tertiary else None,
            grades=[g.to_model() for g in self.grades],
            is_active=self.is_active,
        )


class DivisionSchema(BaseModel):
    """디비전 스키마"""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    gender: Optional[str] = Field(None, description="성별 제한 (없으면 전체)")
    age_min: Optional[int] = Field(None, ge=0, le=120, description="최소 나이 (포함)")
    age_max: Optional[int] = Field(None, ge=0, le=120, description="최대 나이 (포함)")
    sort_order: int = Field(default=0)
    is_active: bool = Field(default=True)

    @field_validator("gender")
    @classmethod
    def normalize_gender(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().lower()
        return v or None

    @model_validator(mode="after")
    def validate_ages(self) -> "DivisionSchema":
        if self.age_min is not None and self.age_max is not None and self.age_min > self.age_max:
            raise ValueError(f"age_min({self.age_min})이 age_max({self.age_max})보다 큽니다")
        return self

    def to_model(self) -> Division:
        return Division(
            id=self.id,
            name=self.name,
            gender=self.gender,
            age_min=self.age_min,
            age_max=self.age_max,
            sort_order=self.sort_order,
            is_active=self.is_active,
        )


class BreakthroughRuleSchema(BaseModel):
    """승급 규칙 스키마"""
    domain_id: str = Field(..., min_length=1)
    from_rank: Rank
    to_rank: Rank
    tier_required: Rank
    challenge_count: int = Field(..., ge=1, description="필요 챌린지 수")
    division_id: Optional[str] = Field(None, description="없으면 도메인 공통 규칙")
    is_active: bool = Field(default=True)

    @field_validator("from_rank", "to_rank", "tier_required", mode="before")
    @classmethod
    def parse_rank(cls, v):
        return Rank.parse(v)

    @model_validator(mode="after")
    def validate_transition(self) -> "BreakthroughRuleSchema":
        """한 단계 전환만 허용"""
        expected = next_rank(self.from_rank)
        if expected is None:
            raise ValueError("S 등급에서는 승급 규칙을 정의할 수 없습니다")
        if Rank(self.to_rank) != expected:
            raise ValueError(f"{self.from_rank} 다음 등급은 {expected}입니다 (입력: {self.to_rank})")
        return self

    def to_model(self) -> BreakthroughRule:
        return BreakthroughRule(
            domain_id=self.domain_id,
            from_rank=self.from_rank,
            to_rank=self.to_rank,
            tier_required=self.tier_required,
            challenge_count=self.challenge_count,
            division_id=self.division_id,
            is_active=self.is_active,
        )


class DefaultRuleSchema(BaseModel):
    """기본 승급 테이블 항목"""
    from_rank: Rank
    tier_required: Rank
    challenge_count: int = Field(..., ge=1)

    @field_validator("from_rank", "tier_required", mode="before")
    @classmethod
    def parse_rank(cls, v):
        return Rank.parse(v)

    @model_validator(mode="after")
    def validate_from_rank(self) -> "DefaultRuleSchema":
        if next_rank(self.from_rank) is None:
            raise ValueError("S 등급에서는 승급 규칙을 정의할 수 없습니다")
        return self

    def to_requirement(self) -> BreakthroughRequirement:
        return BreakthroughRequirement(
            from_rank=Rank(self.from_rank),
            to_rank=next_rank(self.from_rank),
            tier_required=Rank(self.tier_required),
            challenge_count=self.challenge_count,
        )


class RankTablesSchema(BaseModel):
    """XP 테이블 재정의 (JSON 파일)"""
    xp_per_sublevel: Optional[Dict[Rank, int]] = Field(None, description="서브레벨당 XP")
    xp_per_tier: Optional[Dict[Rank, int]] = Field(None, description="티어당 XP")
    default_breakthrough_rules: Optional[List[DefaultRuleSchema]] = Field(None)

    @field_validator("xp_per_sublevel", "xp_per_tier")
    @classmethod
    def validate_table(cls, v: Optional[Dict[Rank, int]]) -> Optional[Dict[Rank, int]]:
        if v is None:
            return v
        missing = [r.value for r in RANKS if r not in v]
        if missing:
            raise ValueError(f"누락된 등급: {missing}")
        if any(amount <= 0 for amount in v.values()):
            raise ValueError("XP 값은 양수여야 합니다")
        return v

    def to_model(self, base: Optional[RankTables] = None) -> RankTables:
        """지정되지 않은 항목은 base(기본 테이블)를 사용"""
        base = base or RankTables()
        rules = (
            tuple(r.to_requirement() for r in self.default_breakthrough_rules)
            if self.default_breakthrough_rules is not None
            else base.default_breakthrough_rules
        )
        return RankTables(
            xp_per_sublevel=self.xp_per_sublevel or dict(base.xp_per_sublevel),
            xp_per_tier=self.xp_per_tier or dict(base.xp_per_tier),
            default_breakthrough_rules=rules or DEFAULT_BREAKTHROUGH_RULES,
        )


class SubmissionInputSchema(BaseModel):
    """시뮬레이션 제출 입력"""
    athlete_id: str
    challenge_id: str
    achieved_value: Optional[float] = None
    status: SubmissionStatus = Field(default=SubmissionStatus.APPROVED)

    class Config:
        use_enum_values = True


class WorldSchema(BaseModel):
    """시뮬레이션용 전체 설정 (CLI simulate)"""
    domains: List[DomainSchema] = Field(default_factory=list)
    divisions: List[DivisionSchema] = Field(default_factory=list)
    athletes: List[AthleteSchema] = Field(default_factory=list)
    challenges: List[ChallengeSchema] = Field(default_factory=list)
    breakthrough_rules: List[BreakthroughRuleSchema] = Field(default_factory=list)
    submissions: List[SubmissionInputSchema] = Field(default_factory=list)
    breakthroughs: List[Dict[str, str]] = Field(
        default_factory=list,
        description="제출 재생 후 시도할 승급 [{athlete_id, domain_id}]"
    )

    @model_validator(mode="after")
    def validate_references(self) -> "WorldSchema":
        """제출물이 참조하는 선수/챌린지 존재 확인"""
        athlete_ids = {a.id for a in self.athletes}
        challenge_ids = {c.id for c in self.challenges}
        for sub in self.submissions:
            if sub.athlete_id not in athlete_ids:
                raise ValueError(f"알 수 없는 선수: {sub.athlete_id}")
            if sub.challenge_id not in challenge_ids:
                raise ValueError(f"알 수 없는 챌린지: {sub.challenge_id}")
        return self
