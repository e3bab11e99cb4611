"""
외부 협력자가 엔진에 넘겨주는 데이터 모델

선수, 챌린지, 제출물 - 엔진은 이 값들을 읽고 제출물의 claimed_tiers/xp_awarded만 갱신한다.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from .grading import Grade, GradingType
from .ranks import Rank, sort_ranks


class SubmissionStatus(str, Enum):
    """제출물 상태"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    NEEDS_REVISION = "NEEDS_REVISION"


@dataclass
class Athlete:
    """선수"""
    id: str
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    display_name: str = ""


@dataclass
class Domain:
    """독립적으로 성장하는 능력 분류 (Strength, Endurance ...)"""
    id: str
    name: str
    sort_order: int = 0
    is_active: bool = True


@dataclass
class DomainWeight:
    """챌린지 XP 분배 대상 도메인과 비율(%)"""
    domain_id: str
    percent: float


@dataclass
class Challenge:
    """챌린지"""
    id: str
    name: str
    primary: DomainWeight
    grading_type: GradingType = GradingType.REPS
    min_rank: Rank = Rank.F
    secondary: Optional[DomainWeight] = None
    tertiary: Optional[DomainWeight] = None
    grades: List[Grade] = field(default_factory=list)
    is_active: bool = True

    def __post_init__(self):
        self.grading_type = GradingType(self.grading_type)
        self.min_rank = Rank.parse(self.min_rank)

    @property
    def primary_domain_id(self) -> str:
        return self.primary.domain_id

    @property
    def weights(self) -> List[Optional[DomainWeight]]:
        """분배 순서: 주 → 보조 → 3차"""
        return [self.primary, self.secondary, self.tertiary]


@dataclass
class SubmissionVersion:
    """재제출 시 보관되는 이전 버전"""
    submission_id: str
    version: int
    achieved_value: Optional[float]
    achieved_rank: Optional[Rank]
    status: SubmissionStatus
    review_notes: Optional[str]
    submitted_at: datetime
    reviewed_at: Optional[datetime]
    archived_at: datetime = field(default_factory=datetime.now)


@dataclass
class Submission:
    """챌린지 제출물 (선수 × 챌린지 당 1개, 재제출 시 갱신)"""
    id: str
    athlete_id: str
    challenge_id: str
    achieved_value: Optional[float] = None
    achieved_rank: Optional[Rank] = None
    status: SubmissionStatus = SubmissionStatus.PENDING
    claimed_tiers: List[Rank] = field(default_factory=list)
    xp_awarded: int = 0
    review_notes: Optional[str] = None
    submitted_at: datetime = field(default_factory=datetime.now)
    reviewed_at: Optional[datetime] = None

    def __post_init__(self):
        self.achieved_rank = Rank.parse(self.achieved_rank)
        self.status = SubmissionStatus(self.status)
        if isinstance(self.claimed_tiers, str):
            self.claimed_tiers = [t for t in self.claimed_tiers.split(",") if t.strip()]
        self.claimed_tiers = sort_ranks(self.claimed_tiers)

    @property
    def is_approved(self) -> bool:
        return self.status == SubmissionStatus.APPROVED

    @property
    def claimed_tiers_text(self) -> str:
        """저장용 직렬화 ("F,E,D")"""
        return ",".join(r.value for r in self.claimed_tiers)

    def archive(self, version: int) -> SubmissionVersion:
        return SubmissionVersion(
            submission_id=self.id,
            version=version,
            achieved_value=self.achieved_value,
            achieved_rank=self.achieved_rank,
            status=self.status,
            review_notes=self.review_notes,
            submitted_at=self.submitted_at,
            reviewed_at=self.reviewed_at,
        )
