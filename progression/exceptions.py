"""
진행(Progression) 엔진 예외 정의

순수 계산 함수는 "결과 없음"에 대해 예외를 던지지 않고 None/빈 값을 반환한다.
아래 예외는 상태를 변경하는 작업(승급 실행, 심사 등)에서만 사용한다.
"""
from typing import Optional, Dict, Any


class ProgressionError(Exception):
    """진행 엔진 기본 예외"""

    def __init__(
        self,
        message: str,
        code: str = "PROGRESSION_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """호출자에게 노출할 딕셔너리 형태"""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(ProgressionError):
    """도메인 레벨/선수/디비전 등 필수 데이터가 없음"""

    def __init__(self, entity: str, entity_id: Any = None, message: str = None):
        msg = message or f"{entity} not found: {entity_id}"
        super().__init__(
            message=msg,
            code="NOT_FOUND",
            details={"entity": entity, "entity_id": entity_id}
        )


class AlreadyAtMaxError(ProgressionError):
    """S 등급에서 승급 시도"""

    def __init__(self, athlete_id: str, domain_id: str):
        super().__init__(
            message="Already at maximum rank",
            code="ALREADY_AT_MAX",
            details={"athlete_id": athlete_id, "domain_id": domain_id}
        )


class RequirementsNotMetError(ProgressionError):
    """승급 조건 미달 (예: "7/10 challenges completed")"""

    def __init__(self, current_progress: int, challenge_count: int, tier_required: str):
        self.current_progress = current_progress
        self.challenge_count = challenge_count
        self.tier_required = tier_required
        super().__init__(
            message=(
                f"Breakthrough requirements not met: "
                f"{current_progress}/{challenge_count} challenges completed "
                f"at {tier_required}-tier or higher"
            ),
            code="REQUIREMENTS_NOT_MET",
            details={
                "current_progress": current_progress,
                "challenge_count": challenge_count,
                "tier_required": tier_required,
            }
        )


class InvalidGradeConfiguration(ProgressionError):
    """등급 기준표 구성 오류 (판정 시에는 던지지 않고 검증 리포트에만 사용)"""

    def __init__(self, message: str, division_id: Optional[str] = None):
        super().__init__(
            message=message,
            code="INVALID_GRADE_CONFIGURATION",
            details={"division_id": division_id}
        )


class SubmissionStateError(ProgressionError):
    """이미 심사된 제출물을 다시 심사하려는 경우"""

    def __init__(self, submission_id: str, status: str):
        super().__init__(
            message=f"Submission {submission_id} has already been reviewed ({status})",
            code="SUBMISSION_STATE",
            details={"submission_id": submission_id, "status": status}
        )
