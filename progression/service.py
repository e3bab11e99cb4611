"""
진행 서비스

제출물 승인 → 등급 판정 → 신규 티어 계산 → XP 분배 → 원장 적용(적립 포함)
→ 승급 조건 조회(읽기 전용). 승급 실행은 process_breakthrough 명시 호출로만 일어난다.

한 번의 승인 = DomainLevel, XP 거래 로그, 제출물의 일괄 갱신.
DomainLevel 갱신은 저장소의 (선수, 도메인) 잠금 안에서 수행한다.
"""
import uuid
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from .breakthrough import (
    BreakthroughProgress,
    execute_breakthrough,
    get_breakthrough_progress,
)
from .divisions import find_division_for_athlete
from .events import EventPublisher, EventType, ProgressionEvent
from .exceptions import (
    AlreadyAtMaxError,
    NotFoundError,
    RequirementsNotMetError,
    SubmissionStateError,
)
from .grading import resolve_for_athlete
from .leveling import DomainLevel, LevelResult, XPSource, XPTransaction, apply_xp, level_from_total_xp
from .models import Athlete, Challenge, Submission, SubmissionStatus
from .ranks import DEFAULT_RANK_TABLES, Rank, RankTables, format_level, next_rank
from .repository import ProgressionRepository
from .rewards import XPShare, base_xp, compute_new_tiers, distribute_xp, merge_claimed_tiers


@dataclass
class AwardResult:
    """제출물 XP 지급 결과"""
    submission_id: str
    new_tiers: List[Rank] = field(default_factory=list)
    base_xp: int = 0
    shares: List[XPShare] = field(default_factory=list)
    level_results: Dict[str, LevelResult] = field(default_factory=dict)

    @property
    def awarded(self) -> bool:
        return bool(self.new_tiers)

    @property
    def level_ups(self) -> List[LevelResult]:
        return [r for r in self.level_results.values() if r.leveled_up]

    @property
    def highest_new_tier(self) -> Optional[Rank]:
        return self.new_tiers[-1] if self.new_tiers else None


@dataclass
class SubmissionOutcome:
    """제출/심사 결과"""
    submission: Submission
    is_resubmission: bool = False
    award: Optional[AwardResult] = None


@dataclass
class BreakthroughResult:
    """승급 실행 결과"""
    athlete_id: str
    domain_id: str
    previous_rank: Rank
    new_rank: Rank
    new_sublevel: int
    released_xp: int
    remaining_banked_xp: int


@dataclass
class DomainProgress:
    domain_id: str
    domain_name: str
    current_rank: Rank
    progress: Optional[BreakthroughProgress]


@dataclass
class XPDiscrepancy:
    """원장 합계와 제출물 기준 기대값의 차이"""
    domain_id: str
    expected_xp: int
    ledger_xp: int
    implied_level: str
    orphan_transactions: int = 0

    @property
    def difference(self) -> int:
        return self.ledger_xp - self.expected_xp


class ProgressionService:
    """진행 엔진 서비스"""

    def __init__(
        self,
        repository: ProgressionRepository,
        tables: RankTables = DEFAULT_RANK_TABLES,
        publisher: Optional[EventPublisher] = None,
        clock: Callable[[], date] = date.today
    ):
        self.repo = repository
        self.tables = tables
        self.publisher = publisher or EventPublisher()
        self.clock = clock

    # =============================================
    # 조회 헬퍼
    # =============================================

    def _require_athlete(self, athlete_id: str) -> Athlete:
        athlete = self.repo.get_athlete(athlete_id)
        if athlete is None:
            raise NotFoundError("Athlete", athlete_id)
        return athlete

    def _require_challenge(self, challenge_id: str) -> Challenge:
        challenge = self.repo.get_challenge(challenge_id)
        if challenge is None:
            raise NotFoundError("Challenge", challenge_id)
        return challenge

    def _require_submission(self, submission_id: str) -> Submission:
        submission = self.repo.get_submission(submission_id)
        if submission is None:
            raise NotFoundError("Submission", submission_id)
        return submission

    def _division_id_for(self, athlete: Athlete) -> Optional[str]:
        division = find_division_for_athlete(self.repo.list_divisions(), athlete, self.clock())
        return division.id if division else None

    def grade(self, athlete: Athlete, challenge: Challenge, achieved_value: Optional[float]) -> Optional[Rank]:
        """선수 디비전 기준표로 달성 등급 계산"""
        return resolve_for_athlete(
            achieved_value,
            challenge.grades,
            challenge.grading_type,
            self.repo.list_divisions(),
            athlete,
            self.clock(),
        )

    # =============================================
    # 제출 및 심사
    # =============================================

    def submit(
        self,
        athlete_id: str,
        challenge_id: str,
        achieved_value: Optional[float] = None,
        auto_approve: bool = False,
        notes: Optional[str] = None
    ) -> SubmissionOutcome:
        """
        제출 또는 재제출

        - 같은 챌린지에 기존 제출물이 있으면 이전 버전을 보관한 뒤 덮어쓴다
        - claimed_tiers, xp_awarded는 재제출 후에도 유지된다
        - auto_approve(코치/관리자)면 즉시 승인 후 XP 지급
        """
        athlete = self._require_athlete(athlete_id)
        challenge = self._require_challenge(challenge_id)
        if not challenge.is_active:
            raise NotFoundError("Challenge", challenge_id, message=f"Challenge is no longer active: {challenge_id}")

        achieved_rank = self.grade(athlete, challenge, achieved_value)
        now = datetime.now()
        status = SubmissionStatus.APPROVED if auto_approve else SubmissionStatus.PENDING

        existing = self.repo.find_submission(athlete_id, challenge_id)
        if existing:
            version_no = len(self.repo.list_submission_versions(existing.id)) + 1
            self.repo.add_submission_version(existing.archive(version_no))
            self.publisher.publish(ProgressionEvent(
                event_type=EventType.SUBMISSION_ARCHIVED,
                athlete_id=athlete_id,
                data={"submission_id": existing.id, "version": version_no},
            ))

            existing.achieved_value = achieved_value
            existing.achieved_rank = achieved_rank
            existing.status = status
            existing.review_notes = notes
            existing.submitted_at = now
            existing.reviewed_at = now if auto_approve else None
            submission = existing
            logger.info(f"재제출: {submission.id} (v{version_no} 보관, rank={achieved_rank})")
        else:
            submission = Submission(
                id=str(uuid.uuid4()),
                athlete_id=athlete_id,
                challenge_id=challenge_id,
                achieved_value=achieved_value,
                achieved_rank=achieved_rank,
                status=status,
                review_notes=notes,
                submitted_at=now,
                reviewed_at=now if auto_approve else None,
            )
            logger.info(f"신규 제출: {submission.id} ({challenge.name}, rank={achieved_rank})")

        self.repo.save_submission(submission)

        award = None
        if auto_approve and submission.achieved_rank:
            award = self._approve(submission, challenge)

        return SubmissionOutcome(
            submission=submission,
            is_resubmission=existing is not None,
            award=award,
        )

    def review_submission(
        self,
        submission_id: str,
        status: SubmissionStatus,
        achieved_value: Optional[float] = None,
        review_notes: Optional[str] = None
    ) -> SubmissionOutcome:
        """
        제출물 심사

        심사자가 측정값을 수정하면 등급을 다시 판정한다. 승인 시 XP 지급.
        """
        submission = self._require_submission(submission_id)
        if submission.status != SubmissionStatus.PENDING:
            raise SubmissionStateError(submission_id, submission.status.value)

        challenge = self._require_challenge(submission.challenge_id)

        if achieved_value is not None:
            athlete = self._require_athlete(submission.athlete_id)
            submission.achieved_value = achieved_value
            submission.achieved_rank = self.grade(athlete, challenge, achieved_value)

        submission.status = SubmissionStatus(status)
        submission.review_notes = review_notes
        submission.reviewed_at = datetime.now()
        self.repo.save_submission(submission)
        logger.info(f"심사 완료: {submission_id} → {submission.status.value}")

        award = None
        if submission.is_approved and submission.achieved_rank:
            award = self._approve(submission, challenge)

        return SubmissionOutcome(submission=submission, award=award)

    def _approve(self, submission: Submission, challenge: Challenge) -> AwardResult:
        self.publisher.publish(ProgressionEvent(
            event_type=EventType.SUBMISSION_APPROVED,
            athlete_id=submission.athlete_id,
            domain_id=challenge.primary_domain_id,
            data={"submission_id": submission.id, "achieved_rank": str(submission.achieved_rank)},
            correlation_id=submission.id,
        ))
        return self.award_submission_xp(submission, challenge)

    # =============================================
    # XP 지급
    # =============================================

    def award_submission_xp(self, submission: Submission, challenge: Challenge) -> AwardResult:
        """
        승인된 제출물의 신규 티어 XP 지급

        이미 받은 티어는 다시 지급하지 않는다.
        관련 도메인 잠금을 모두 잡고 도메인별 결과를 전부 계산한 다음에 기록한다.
        계산 중 실패하면 아무것도 기록되지 않는다. 기록 단계의 원자성은 저장소 트랜잭션 몫이다.
        """
        result = AwardResult(submission_id=submission.id)

        new_tiers = compute_new_tiers(submission.claimed_tiers, challenge.min_rank, submission.achieved_rank)
        if not new_tiers:
            logger.debug(f"신규 티어 없음: {submission.id} (claimed={submission.claimed_tiers_text})")
            return result

        result.new_tiers = new_tiers
        result.base_xp = base_xp(new_tiers, self.tables)
        result.shares = distribute_xp(result.base_xp, challenge.weights)

        tiers_text = ",".join(t.value for t in new_tiers)
        note = f"Completed {tiers_text} tier(s)"

        with ExitStack() as stack:
            # 잠금 순서 고정
            for domain_id in sorted({s.domain_id for s in result.shares}):
                stack.enter_context(self.repo.lock(submission.athlete_id, domain_id))

            pending = [
                self._prepare_award(
                    submission.athlete_id, share.domain_id, share.amount,
                    XPSource.CHALLENGE, submission.id, note
                )
                for share in result.shares
            ]
            for level_result, _, transaction in pending:
                self._commit_award(level_result, transaction)

            submission.claimed_tiers = merge_claimed_tiers(submission.claimed_tiers, new_tiers)
            submission.xp_awarded += result.base_xp
            self.repo.save_submission(submission)

        for share, (level_result, was_ready, _) in zip(result.shares, pending):
            result.level_results[share.domain_id] = level_result
            self._publish_award_events(level_result, was_ready, submission.id)

        logger.info(
            f"티어 보상: {submission.id} [{tiers_text}] base={result.base_xp}XP → "
            + ", ".join(f"{s.domain_id}+{s.amount}" for s in result.shares)
        )
        return result

    def award_xp(
        self,
        athlete_id: str,
        domain_id: str,
        amount: int,
        source: XPSource = XPSource.CHALLENGE,
        source_id: Optional[str] = None,
        note: Optional[str] = None
    ) -> LevelResult:
        """
        도메인 XP 지급

        레벨 변화 여부와 무관하게 거래 기록을 남긴다.
        DomainLevel이 없으면 F0으로 생성한다.
        """
        with self.repo.lock(athlete_id, domain_id):
            result, was_ready, transaction = self._prepare_award(
                athlete_id, domain_id, amount, source, source_id, note
            )
            self._commit_award(result, transaction)

        self._publish_award_events(result, was_ready, source_id)
        return result

    def _prepare_award(
        self,
        athlete_id: str,
        domain_id: str,
        amount: int,
        source: XPSource,
        source_id: Optional[str],
        note: Optional[str]
    ) -> Tuple[LevelResult, bool, XPTransaction]:
        """잠금 안에서 호출. 저장소에 쓰지 않는다."""
        level = self.repo.get_domain_level(athlete_id, domain_id) or DomainLevel.initial(athlete_id, domain_id)
        result = apply_xp(level, amount, self.tables)

        was_ready = level.breakthrough_ready
        result.new_level.breakthrough_ready = self._requirements_met(athlete_id, domain_id, result.new_level.letter)

        transaction = XPTransaction(
            athlete_id=athlete_id,
            domain_id=domain_id,
            amount=amount,
            source=XPSource(source),
            source_id=source_id,
            note=note,
        )
        return result, was_ready, transaction

    def _commit_award(self, result: LevelResult, transaction: XPTransaction) -> None:
        self.repo.save_domain_level(result.new_level)
        self.repo.add_transaction(transaction)

    def _requirements_met(self, athlete_id: str, domain_id: str, current_rank: Rank) -> bool:
        """승급 조건 충족 여부 (읽기 전용)"""
        progress = self.get_breakthrough_progress(athlete_id, domain_id, current_rank)
        return progress.is_complete if progress else False

    def _publish_award_events(self, result: LevelResult, was_ready: bool, source_id: Optional[str]) -> None:
        level = result.new_level
        base = dict(athlete_id=level.athlete_id, domain_id=level.domain_id, correlation_id=source_id)

        self.publisher.publish(ProgressionEvent(
            event_type=EventType.XP_AWARDED,
            data={"amount": result.amount, "level": level.label},
            **base
        ))
        if result.leveled_up:
            self.publisher.publish(ProgressionEvent(
                event_type=EventType.LEVEL_UP,
                data={
                    "previous_level": result.previous_level.numeric_level,
                    "new_level": level.numeric_level,
                    "previous_label": result.previous_level.label,
                    "new_label": level.label,
                    "xp_gained": result.amount,
                },
                **base
            ))
        if result.banked:
            self.publisher.publish(ProgressionEvent(
                event_type=EventType.XP_BANKED,
                data={"banked": result.banked, "banked_total": level.banked_xp},
                **base
            ))
        if level.breakthrough_ready and not was_ready:
            self.publisher.publish(ProgressionEvent(
                event_type=EventType.BREAKTHROUGH_READY,
                data={"from_rank": level.letter.value, "to_rank": str(next_rank(level.letter))},
                **base
            ))

    # =============================================
    # 승급
    # =============================================

    def get_breakthrough_progress(
        self,
        athlete_id: str,
        domain_id: str,
        current_rank: Optional[Rank] = None
    ) -> Optional[BreakthroughProgress]:
        """
        승급 진행 현황 (읽기 전용, 진행 바 폴링용)

        current_rank를 생략하면 저장된 레벨을 사용하고, 레벨이 없으면 F로 본다.
        """
        if current_rank is None:
            level = self.repo.get_domain_level(athlete_id, domain_id)
            current_rank = level.letter if level else Rank.F

        athlete = self.repo.get_athlete(athlete_id)
        division_id = self._division_id_for(athlete) if athlete else None

        return get_breakthrough_progress(
            self.repo.list_breakthrough_rules(domain_id),
            self.repo.list_submissions(athlete_id),
            self.repo.list_challenges(),
            athlete_id,
            domain_id,
            current_rank,
            division_id,
            self.tables,
        )

    def get_all_breakthrough_progress(self, athlete_id: str) -> List[DomainProgress]:
        """모든 활성 도메인의 승급 진행 현황"""
        levels = {lv.domain_id: lv for lv in self.repo.list_domain_levels(athlete_id)}
        results = []
        for domain in self.repo.list_domains():
            level = levels.get(domain.id)
            current_rank = level.letter if level else Rank.F
            results.append(DomainProgress(
                domain_id=domain.id,
                domain_name=domain.name,
                current_rank=current_rank,
                progress=self.get_breakthrough_progress(athlete_id, domain.id, current_rank),
            ))
        return results

    def process_breakthrough(self, athlete_id: str, domain_id: str) -> BreakthroughResult:
        """
        승급 실행

        Raises:
            NotFoundError: 도메인 레벨 또는 선수가 없음
            AlreadyAtMaxError: 이미 S 등급
            RequirementsNotMetError: 조건 미달 ("7/10 challenges completed")
        """
        with self.repo.lock(athlete_id, domain_id):
            level = self.repo.get_domain_level(athlete_id, domain_id)
            if level is None:
                raise NotFoundError("DomainLevel", f"{athlete_id}/{domain_id}", message="Domain level not found")

            if next_rank(level.letter) is None:
                raise AlreadyAtMaxError(athlete_id, domain_id)

            athlete = self._require_athlete(athlete_id)
            division_id = self._division_id_for(athlete)
            if division_id is None:
                logger.debug(f"디비전 없음 - 도메인 공통/기본 규칙 사용: {athlete_id}")

            progress = get_breakthrough_progress(
                self.repo.list_breakthrough_rules(domain_id),
                self.repo.list_submissions(athlete_id),
                self.repo.list_challenges(),
                athlete_id,
                domain_id,
                level.letter,
                division_id,
                self.tables,
            )
            if progress is None or not progress.is_complete:
                current = progress.current_progress if progress else 0
                required = progress.challenge_count if progress else 0
                tier = progress.tier_required.value if progress else "-"
                logger.info(f"승급 조건 미달: {athlete_id}/{domain_id} {current}/{required}")
                raise RequirementsNotMetError(current, required, tier)

            released = level.banked_xp
            new_level = execute_breakthrough(level, self.tables)
            self.repo.save_domain_level(new_level)
            self.repo.add_transaction(XPTransaction(
                athlete_id=athlete_id,
                domain_id=domain_id,
                amount=0,
                source=XPSource.BONUS,
                note=f"Breakthrough: {level.letter.value} → {new_level.letter.value}",
            ))

        logger.info(
            f"🎉 승급 완료: {athlete_id}/{domain_id} {level.label} → {new_level.label} "
            f"(released={released}, remaining banked={new_level.banked_xp})"
        )
        self.publisher.publish(ProgressionEvent(
            event_type=EventType.BREAKTHROUGH_COMPLETED,
            athlete_id=athlete_id,
            domain_id=domain_id,
            data={
                "from_rank": level.letter.value,
                "to_rank": new_level.letter.value,
                "new_sublevel": new_level.sublevel,
                "released_xp": released,
            },
        ))

        return BreakthroughResult(
            athlete_id=athlete_id,
            domain_id=domain_id,
            previous_rank=level.letter,
            new_rank=new_level.letter,
            new_sublevel=new_level.sublevel,
            released_xp=released,
            remaining_banked_xp=new_level.banked_xp,
        )

    # =============================================
    # XP 감사
    # =============================================

    def audit_xp(self, athlete_id: str) -> List[XPDiscrepancy]:
        """
        XP 원장 감사 (보고만 하고 수정하지 않음)

        승인된 제출물의 xp_awarded를 챌린지 비율로 나눈 기대값과
        CHALLENGE 거래 합계를 도메인별로 비교한다.
        지급 건별 반올림 차이(건당 최대 0.5)는 허용한다.
        """
        self._require_athlete(athlete_id)
        challenges = self.repo.list_challenges()

        approved_ids = set()
        expected: Dict[str, int] = {}
        for submission in self.repo.list_submissions(athlete_id):
            if not submission.is_approved or submission.xp_awarded <= 0:
                continue
            challenge = challenges.get(submission.challenge_id)
            if challenge is None:
                continue
            approved_ids.add(submission.id)
            for share in distribute_xp(submission.xp_awarded, challenge.weights):
                expected[share.domain_id] = expected.get(share.domain_id, 0) + share.amount

        ledger: Dict[str, int] = {}
        tx_counts: Dict[str, int] = {}
        orphans: Dict[str, int] = {}
        for tx in self.repo.list_transactions(athlete_id):
            if tx.source != XPSource.CHALLENGE:
                continue
            if tx.source_id not in approved_ids:
                orphans[tx.domain_id] = orphans.get(tx.domain_id, 0) + 1
                continue
            ledger[tx.domain_id] = ledger.get(tx.domain_id, 0) + tx.amount
            tx_counts[tx.domain_id] = tx_counts.get(tx.domain_id, 0) + 1

        discrepancies = []
        for domain_id in sorted(set(expected) | set(ledger) | set(orphans)):
            exp = expected.get(domain_id, 0)
            actual = ledger.get(domain_id, 0)
            tolerance = 0.5 * (tx_counts.get(domain_id, 0) + 1)
            if abs(actual - exp) > tolerance or orphans.get(domain_id):
                letter, sublevel = level_from_total_xp(exp, self.tables)
                discrepancies.append(XPDiscrepancy(
                    domain_id=domain_id,
                    expected_xp=exp,
                    ledger_xp=actual,
                    implied_level=format_level(letter, sublevel),
                    orphan_transactions=orphans.get(domain_id, 0),
                ))

        if discrepancies:
            logger.warning(f"XP 불일치 {len(discrepancies)}건: {athlete_id}")
        else:
            logger.info(f"XP 감사 통과: {athlete_id}")
        return discrepancies
