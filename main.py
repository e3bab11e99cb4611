"""
챌린지 진행 엔진 CLI

- grade: 측정값 → 달성 등급
- simulate: 설정 JSON을 불러와 제출물을 재생하고 레벨/승급 현황 출력
- rules: 기본 승급 조건 테이블 출력
"""
import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from progression.config import ProgressionSettings, get_settings, load_rank_tables
from progression.events import EventPublisher
from progression.exceptions import ProgressionError
from progression.models import SubmissionStatus
from progression.ranks import RANK_LABELS, RankTables, calculate_prime
from progression.repository import InMemoryRepository
from progression.schemas import WorldSchema
from progression.service import ProgressionService
from progression.validators import ConfigValidator


def setup_logging(settings: ProgressionSettings):
    """로깅 설정"""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.LOG_LEVEL
    )
    if settings.LOG_FILE:
        logger.add(
            settings.LOG_FILE,
            rotation="10 MB",
            retention="30 days",
            level="DEBUG"
        )


def load_world(path: str) -> WorldSchema:
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"설정 파일이 없습니다: {path}")
    with open(file_path, "r", encoding="utf-8") as f:
        return WorldSchema(**json.load(f))


def build_service(world: WorldSchema, tables: RankTables, event_log_size: int = 1000) -> ProgressionService:
    """설정 JSON으로 메모리 저장소를 채운 서비스 생성"""
    repo = InMemoryRepository()
    for domain in world.domains:
        repo.add_domain(domain.to_model())
    for division in world.divisions:
        repo.add_division(division.to_model())
    for athlete in world.athletes:
        repo.add_athlete(athlete.to_model())
    for challenge in world.challenges:
        repo.add_challenge(challenge.to_model())
    for rule in world.breakthrough_rules:
        repo.add_breakthrough_rule(rule.to_model())

    validator = ConfigValidator()
    result = validator.validate_divisions(repo.list_divisions())
    for challenge in repo.challenges.values():
        result = result.merge(validator.validate_grades(challenge.grades, challenge.grading_type))
        result = result.merge(validator.validate_challenge_weights(challenge))
    for issue in result.errors + result.warnings:
        logger.warning(f"[{issue.error_type}] {issue.message}")

    return ProgressionService(repo, tables=tables, publisher=EventPublisher(max_log_size=event_log_size))


def cmd_grade(args, tables: RankTables) -> int:
    world = load_world(args.world)
    service = build_service(world, tables)
    athlete = service.repo.get_athlete(args.athlete)
    challenge = service.repo.get_challenge(args.challenge)
    if athlete is None or challenge is None:
        print("선수 또는 챌린지를 찾을 수 없습니다")
        return 1

    rank = service.grade(athlete, challenge, args.value)
    if rank is None:
        print(f"{challenge.name}: {args.value} → 등급 없음")
    else:
        print(f"{challenge.name}: {args.value} → {rank.value} ({RANK_LABELS[rank]})")
    return 0


def cmd_simulate(args, tables: RankTables, settings: ProgressionSettings) -> int:
    world = load_world(args.world)
    service = build_service(world, tables, settings.EVENT_LOG_SIZE)

    for item in world.submissions:
        status = SubmissionStatus(item.status)
        outcome = service.submit(
            item.athlete_id,
            item.challenge_id,
            item.achieved_value,
            auto_approve=status == SubmissionStatus.APPROVED,
        )
        if status not in (SubmissionStatus.APPROVED, SubmissionStatus.PENDING):
            service.review_submission(outcome.submission.id, status)

    for request in world.breakthroughs:
        try:
            result = service.process_breakthrough(request["athlete_id"], request["domain_id"])
            print(f"🎉 {result.athlete_id}/{result.domain_id}: {result.previous_rank} → {result.new_rank}{result.new_sublevel}")
        except ProgressionError as e:
            print(f"승급 실패 {request.get('athlete_id')}/{request.get('domain_id')}: {e.message}")

    print()
    print("=" * 60)
    for athlete in world.athletes:
        levels = service.repo.list_domain_levels(athlete.id)
        prime = calculate_prime(levels)
        print(f"{athlete.display_name or athlete.id}  Prime {prime.letter.value}{prime.sublevel}")
        print("-" * 60)
        for progress in service.get_all_breakthrough_progress(athlete.id):
            level = service.repo.get_domain_level(athlete.id, progress.domain_id)
            label = level.label if level else "F0"
            xp = f"{level.current_xp}XP, banked {level.banked_xp}" if level else "-"
            gate = progress.progress.message if progress.progress else "최고 등급"
            print(f"  {progress.domain_name:<14} {label:<4} ({xp})  승급: {gate}")
        print()
    return 0


def cmd_rules(args, tables: RankTables) -> int:
    print(f"{'From':>4} → {'To':<3} {'Tier':>5} {'Count':>6}  {'Sublevel XP':>12}")
    print("-" * 40)
    for rule in tables.default_breakthrough_rules:
        print(
            f"{rule.from_rank.value:>4} → {rule.to_rank.value:<3} {rule.tier_required.value:>5} "
            f"{rule.challenge_count:>6}  {tables.sublevel_xp(rule.to_rank):>12}"
        )
    return 0


def main():
    """메인 함수"""
    load_dotenv()
    settings = get_settings()
    setup_logging(settings)

    parser = argparse.ArgumentParser(description="챌린지 진행 엔진")
    parser.add_argument("--tables", type=str, default=settings.RANK_TABLES_FILE, help="XP 테이블 JSON")
    subparsers = parser.add_subparsers(dest="command", required=True)

    grade_parser = subparsers.add_parser("grade", help="측정값 등급 판정")
    grade_parser.add_argument("--world", type=str, required=True, help="설정 JSON")
    grade_parser.add_argument("--athlete", type=str, required=True, help="선수 ID")
    grade_parser.add_argument("--challenge", type=str, required=True, help="챌린지 ID")
    grade_parser.add_argument("--value", type=float, required=True, help="측정값")

    simulate_parser = subparsers.add_parser("simulate", help="제출물 재생 시뮬레이션")
    simulate_parser.add_argument("--world", type=str, required=True, help="설정 JSON")

    subparsers.add_parser("rules", help="기본 승급 조건 출력")

    args = parser.parse_args()

    try:
        tables = load_rank_tables(args.tables)
        if args.command == "grade":
            code = cmd_grade(args, tables)
        elif args.command == "simulate":
            code = cmd_simulate(args, tables, settings)
        else:
            code = cmd_rules(args, tables)
    except ProgressionError as e:
        logger.error(f"[{e.code}] {e.message}")
        code = 1
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"설정 오류: {e}")
        code = 2

    sys.exit(code)


if __name__ == "__main__":
    main()
