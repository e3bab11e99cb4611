"""
Pytest configuration and fixtures for the challenge progression engine tests
"""

import pytest
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from progression.breakthrough import BreakthroughRule
from progression.divisions import Division
from progression.events import EventPublisher
from progression.grading import Grade, GradingType
from progression.models import Athlete, Challenge, Domain, DomainWeight
from progression.ranks import Rank
from progression.repository import InMemoryRepository
from progression.service import ProgressionService


TODAY = date(2026, 3, 15)


def rep_grades(division_id, start=10, step=10):
    """F..S thresholds for a higher-is-better challenge"""
    return [
        Grade(rank=rank, target_value=start + i * step, division_id=division_id)
        for i, rank in enumerate(Rank)
    ]


@pytest.fixture(scope="function")
def divisions():
    """Sample divisions (men 18-29, women 18-29, open)"""
    return [
        Division(id="m-18-29", name="Men 18-29", gender="male", age_min=18, age_max=29, sort_order=1),
        Division(id="f-18-29", name="Women 18-29", gender="female", age_min=18, age_max=29, sort_order=2),
        Division(id="open", name="Open", sort_order=99),
    ]


@pytest.fixture(scope="function")
def athlete():
    """Male athlete, 27 years old on TODAY"""
    return Athlete(id="ath-1", gender="male", date_of_birth=date(1998, 5, 1), display_name="Kim")


@pytest.fixture(scope="function")
def strength_challenges():
    """Twelve strength challenges graded for the men's division"""
    return [
        Challenge(
            id=f"str-{i}",
            name=f"Strength Challenge {i}",
            primary=DomainWeight("strength", 100),
            grading_type=GradingType.REPS,
            grades=rep_grades("m-18-29"),
        )
        for i in range(1, 13)
    ]


@pytest.fixture(scope="function")
def burpees():
    """Split challenge: Strength 70%, Skill 30%"""
    return Challenge(
        id="burpees",
        name="Burpees",
        primary=DomainWeight("strength", 70),
        secondary=DomainWeight("skill", 30),
        grading_type=GradingType.REPS,
        grades=rep_grades("m-18-29") + rep_grades("open", start=5, step=5),
    )


@pytest.fixture(scope="function")
def run_5k():
    """Lower-is-better challenge (seconds)"""
    return Challenge(
        id="run-5k",
        name="5K Run",
        primary=DomainWeight("endurance", 100),
        grading_type=GradingType.TIME,
        grades=[
            Grade(Rank.F, 1800, "m-18-29"),
            Grade(Rank.E, 1500, "m-18-29"),
            Grade(Rank.D, 1320, "m-18-29"),
        ],
    )


@pytest.fixture(scope="function")
def repo(divisions, athlete, strength_challenges, burpees, run_5k):
    """In-memory repository seeded with the sample world"""
    repository = InMemoryRepository()
    for domain in [
        Domain("strength", "Strength", sort_order=1),
        Domain("endurance", "Endurance", sort_order=2),
        Domain("skill", "Skill", sort_order=3),
    ]:
        repository.add_domain(domain)
    for division in divisions:
        repository.add_division(division)
    repository.add_athlete(athlete)
    for challenge in strength_challenges + [burpees, run_5k]:
        repository.add_challenge(challenge)
    return repository


@pytest.fixture(scope="function")
def publisher():
    return EventPublisher(max_log_size=500)


@pytest.fixture(scope="function")
def service(repo, publisher):
    """Service with a fixed clock"""
    return ProgressionService(repo, publisher=publisher, clock=lambda: TODAY)


@pytest.fixture(scope="function")
def division_rule():
    """Men's division: F→E needs only 2 challenges at ≥E"""
    return BreakthroughRule(
        domain_id="strength",
        from_rank=Rank.F,
        to_rank=Rank.E,
        tier_required=Rank.E,
        challenge_count=2,
        division_id="m-18-29",
    )
