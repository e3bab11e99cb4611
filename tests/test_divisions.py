"""
Unit tests for division matching
Tests: age calculation, inclusive bounds, gender restriction, sort order tie-break
"""

import pytest
from datetime import date

from progression.divisions import (
    Division,
    calculate_age,
    find_division,
    find_division_for_athlete,
    format_age_range,
    is_minor,
)
from progression.models import Athlete


class TestCalculateAge:
    """Age = calendar-year difference, minus one before the birthday"""

    def test_birthday_passed(self):
        assert calculate_age(date(2000, 1, 10), today=date(2026, 3, 1)) == 26

    def test_birthday_not_yet(self):
        assert calculate_age(date(2000, 6, 10), today=date(2026, 3, 1)) == 25

    def test_birthday_today(self):
        assert calculate_age(date(2000, 3, 1), today=date(2026, 3, 1)) == 26

    def test_is_minor(self):
        assert is_minor(date(2010, 1, 1), today=date(2026, 3, 1))
        assert not is_minor(date(2008, 3, 1), today=date(2026, 3, 1))


class TestFindDivision:

    def test_age_min_inclusive(self, divisions):
        assert find_division(divisions, "male", 18).id == "m-18-29"

    def test_age_max_inclusive(self, divisions):
        assert find_division(divisions, "male", 29).id == "m-18-29"

    def test_outside_bracket_falls_to_open(self, divisions):
        assert find_division(divisions, "male", 30).id == "open"
        assert find_division(divisions, "male", 17).id == "open"

    def test_gender_restriction(self, divisions):
        assert find_division(divisions, "female", 25).id == "f-18-29"

    def test_gender_case_insensitive(self):
        divisions = [Division(id="m", name="Men", gender="Male", age_min=18, age_max=29)]
        assert find_division(divisions, "male", 25).id == "m"
        assert find_division(divisions, " MALE ", 25).id == "m"

    def test_restricted_division_needs_gender(self):
        assert not Division(id="m", name="Men", gender="male").matches_gender(None)
        assert Division(id="o", name="Open").matches_gender(None)

    def test_no_match(self):
        divisions = [Division(id="m", name="Men", gender="male", age_min=18, age_max=29)]
        assert find_division(divisions, "female", 25) is None

    def test_inactive_division_ignored(self):
        divisions = [
            Division(id="a", name="A", age_min=18, age_max=29, sort_order=1, is_active=False),
            Division(id="b", name="B", age_min=18, age_max=29, sort_order=2),
        ]
        assert find_division(divisions, None, 20).id == "b"

    def test_lowest_sort_order_wins_on_overlap(self):
        divisions = [
            Division(id="wide", name="Wide", age_min=10, age_max=60, sort_order=5),
            Division(id="narrow", name="Narrow", age_min=20, age_max=30, sort_order=1),
        ]
        assert find_division(divisions, "male", 25).id == "narrow"

    def test_open_ended_bounds(self):
        divisions = [Division(id="masters", name="Masters", age_min=40)]
        assert find_division(divisions, "female", 90).id == "masters"
        assert find_division(divisions, "female", 39) is None


class TestFindDivisionForAthlete:

    def test_uses_date_of_birth(self, divisions, athlete):
        division = find_division_for_athlete(divisions, athlete, today=date(2026, 3, 15))
        assert division.id == "m-18-29"

    def test_no_date_of_birth(self, divisions):
        athlete = Athlete(id="x", gender="male")
        assert find_division_for_athlete(divisions, athlete) is None


class TestFormatAgeRange:

    @pytest.mark.parametrize("age_min,age_max,expected", [
        (None, None, "All ages"),
        (None, 17, "Under 18"),
        (40, None, "40+"),
        (18, 29, "18-29"),
    ])
    def test_format(self, age_min, age_max, expected):
        assert format_age_range(age_min, age_max) == expected
