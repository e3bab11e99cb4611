"""
저장소 인터페이스

엔진은 저장 기술을 모른다. 서비스는 ProgressionRepository를 통해서만 읽고 쓴다.
같은 (선수, 도메인)의 DomainLevel 읽기-수정-쓰기는 lock() 안에서 직렬화해야 한다.
DB 구현이라면 행 잠금(SELECT ... FOR UPDATE) 트랜잭션이나 낙관적 재시도로 구현한다.
"""
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from .breakthrough import BreakthroughRule
from .divisions import Division
from .leveling import DomainLevel, XPTransaction
from .models import Athlete, Challenge, Domain, Submission, SubmissionVersion


class ProgressionRepository(ABC):
    """진행 엔진 저장소"""

    # ==================== 설정 데이터 ====================

    @abstractmethod
    def get_athlete(self, athlete_id: str) -> Optional[Athlete]:
        pass

    @abstractmethod
    def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        pass

    @abstractmethod
    def list_challenges(self) -> Dict[str, Challenge]:
        pass

    @abstractmethod
    def list_domains(self) -> List[Domain]:
        pass

    @abstractmethod
    def list_divisions(self) -> List[Division]:
        pass

    @abstractmethod
    def list_breakthrough_rules(self, domain_id: Optional[str] = None) -> List[BreakthroughRule]:
        pass

    # ==================== 도메인 레벨 ====================

    @abstractmethod
    def get_domain_level(self, athlete_id: str, domain_id: str) -> Optional[DomainLevel]:
        pass

    @abstractmethod
    def save_domain_level(self, level: DomainLevel) -> None:
        pass

    @abstractmethod
    def list_domain_levels(self, athlete_id: str) -> List[DomainLevel]:
        pass

    # ==================== 제출물 ====================

    @abstractmethod
    def get_submission(self, submission_id: str) -> Optional[Submission]:
        pass

    @abstractmethod
    def find_submission(self, athlete_id: str, challenge_id: str) -> Optional[Submission]:
        pass

    @abstractmethod
    def save_submission(self, submission: Submission) -> None:
        pass

    @abstractmethod
    def list_submissions(self, athlete_id: str) -> List[Submission]:
        pass

    @abstractmethod
    def add_submission_version(self, version: SubmissionVersion) -> None:
        pass

    @abstractmethod
    def list_submission_versions(self, submission_id: str) -> List[SubmissionVersion]:
        pass

    # ==================== XP 거래 ====================

    @abstractmethod
    def add_transaction(self, transaction: XPTransaction) -> None:
        pass

    @abstractmethod
    def list_transactions(self, athlete_id: str, domain_id: Optional[str] = None) -> List[XPTransaction]:
        pass

    # ==================== 직렬화 ====================

    @abstractmethod
    def lock(self, athlete_id: str, domain_id: str):
        """(선수, 도메인) 단위 배타 구간 컨텍스트 매니저"""
        pass


class InMemoryRepository(ProgressionRepository):
    """메모리 저장소 (테스트, CLI 시뮬레이션용)"""

    def __init__(self):
        self.athletes: Dict[str, Athlete] = {}
        self.challenges: Dict[str, Challenge] = {}
        self.domains: Dict[str, Domain] = {}
        self.divisions: Dict[str, Division] = {}
        self.rules: List[BreakthroughRule] = []
        self.levels: Dict[Tuple[str, str], DomainLevel] = {}
        self.submissions: Dict[str, Submission] = {}
        self.versions: Dict[str, List[SubmissionVersion]] = defaultdict(list)
        self.transactions: List[XPTransaction] = []

        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ==================== 시드 ====================

    def add_athlete(self, athlete: Athlete) -> None:
        self.athletes[athlete.id] = athlete

    def add_challenge(self, challenge: Challenge) -> None:
        self.challenges[challenge.id] = challenge

    def add_domain(self, domain: Domain) -> None:
        self.domains[domain.id] = domain

    def add_division(self, division: Division) -> None:
        self.divisions[division.id] = division

    def add_breakthrough_rule(self, rule: BreakthroughRule) -> None:
        self.rules.append(rule)

    # ==================== 조회/저장 ====================

    def get_athlete(self, athlete_id: str) -> Optional[Athlete]:
        return self.athletes.get(athlete_id)

    def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        return self.challenges.get(challenge_id)

    def list_challenges(self) -> Dict[str, Challenge]:
        return dict(self.challenges)

    def list_domains(self) -> List[Domain]:
        return sorted(
            (d for d in self.domains.values() if d.is_active),
            key=lambda d: d.sort_order
        )

    def list_divisions(self) -> List[Division]:
        return list(self.divisions.values())

    def list_breakthrough_rules(self, domain_id: Optional[str] = None) -> List[BreakthroughRule]:
        if domain_id is None:
            return list(self.rules)
        return [r for r in self.rules if r.domain_id == domain_id]

    def get_domain_level(self, athlete_id: str, domain_id: str) -> Optional[DomainLevel]:
        return self.levels.get((athlete_id, domain_id))

    def save_domain_level(self, level: DomainLevel) -> None:
        self.levels[(level.athlete_id, level.domain_id)] = level

    def list_domain_levels(self, athlete_id: str) -> List[DomainLevel]:
        return [lv for (aid, _), lv in self.levels.items() if aid == athlete_id]

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        return self.submissions.get(submission_id)

    def find_submission(self, athlete_id: str, challenge_id: str) -> Optional[Submission]:
        for submission in self.submissions.values():
            if submission.athlete_id == athlete_id and submission.challenge_id == challenge_id:
                return submission
        return None

    def save_submission(self, submission: Submission) -> None:
        self.submissions[submission.id] = submission

    def list_submissions(self, athlete_id: str) -> List[Submission]:
        return [s for s in self.submissions.values() if s.athlete_id == athlete_id]

    def add_submission_version(self, version: SubmissionVersion) -> None:
        self.versions[version.submission_id].append(version)

    def list_submission_versions(self, submission_id: str) -> List[SubmissionVersion]:
        return list(self.versions.get(submission_id, []))

    def add_transaction(self, transaction: XPTransaction) -> None:
        self.transactions.append(transaction)

    def list_transactions(self, athlete_id: str, domain_id: Optional[str] = None) -> List[XPTransaction]:
        return [
            t for t in self.transactions
            if t.athlete_id == athlete_id and (domain_id is None or t.domain_id == domain_id)
        ]

    @contextmanager
    def lock(self, athlete_id: str, domain_id: str) -> Iterator[None]:
        key = (athlete_id, domain_id)
        with self._locks_guard:
            row_lock = self._locks.setdefault(key, threading.Lock())
        with row_lock:
            yield
