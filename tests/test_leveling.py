"""
Unit tests for the XP ledger
Tests: sublevel crossing, carry, banking at sublevel 9, conservation, purity
"""

import pytest

from progression.leveling import DomainLevel, apply_xp, level_from_total_xp
from progression.ranks import DEFAULT_RANK_TABLES, Rank, RankTables


def make_level(letter=Rank.F, sublevel=0, current_xp=0, banked_xp=0):
    return DomainLevel(
        athlete_id="ath-1",
        domain_id="strength",
        letter=letter,
        sublevel=sublevel,
        current_xp=current_xp,
        banked_xp=banked_xp,
    )


class TestDomainLevel:

    def test_initial(self):
        level = DomainLevel.initial("a", "d")
        assert (level.letter, level.sublevel, level.current_xp, level.banked_xp) == (Rank.F, 0, 0, 0)
        assert not level.breakthrough_ready
        assert level.label == "F0"

    def test_invalid_sublevel(self):
        with pytest.raises(ValueError):
            make_level(sublevel=10)

    def test_negative_xp(self):
        with pytest.raises(ValueError):
            make_level(current_xp=-1)


class TestApplyXP:

    def test_no_level_up(self):
        result = apply_xp(make_level(), 50)
        assert result.new_level.sublevel == 0
        assert result.new_level.current_xp == 50
        assert not result.leveled_up

    def test_single_level_up_with_carry(self):
        result = apply_xp(make_level(current_xp=80), 50)
        assert result.new_level.sublevel == 1
        assert result.new_level.current_xp == 30
        assert result.leveled_up
        assert result.previous_level.sublevel == 0

    def test_large_award_crosses_multiple_sublevels(self):
        result = apply_xp(make_level(letter=Rank.E, sublevel=2), 650)
        # E = 200 XP per sublevel
        assert result.new_level.sublevel == 5
        assert result.new_level.current_xp == 50
        assert result.sublevels_gained == 3

    def test_letter_never_changes(self):
        result = apply_xp(make_level(sublevel=8), 5000)
        assert result.new_level.letter is Rank.F
        assert result.new_level.sublevel == 9

    def test_remainder_banked_when_reaching_nine(self):
        result = apply_xp(make_level(sublevel=8, current_xp=90), 60)
        assert result.new_level.sublevel == 9
        assert result.new_level.current_xp == 0
        assert result.new_level.banked_xp == 50
        assert result.banked == 50

    def test_capped_level_banks_everything(self):
        result = apply_xp(make_level(sublevel=9, banked_xp=100), 75)
        assert result.new_level.sublevel == 9
        assert result.new_level.current_xp == 0
        assert result.new_level.banked_xp == 175
        assert not result.leveled_up

    def test_input_not_mutated(self):
        level = make_level(current_xp=10)
        apply_xp(level, 500)
        assert level.current_xp == 10
        assert level.sublevel == 0

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            apply_xp(make_level(), -1)

    def test_zero_amount(self):
        result = apply_xp(make_level(current_xp=10), 0)
        assert result.new_level.current_xp == 10
        assert not result.leveled_up

    def test_custom_tables(self):
        tables = RankTables(
            xp_per_sublevel={**DEFAULT_RANK_TABLES.xp_per_sublevel, Rank.F: 10}
        )
        result = apply_xp(make_level(), 35, tables)
        assert result.new_level.sublevel == 3
        assert result.new_level.current_xp == 5


class TestConservation:
    """current + consumed == old current + amount while nothing is banked"""

    @pytest.mark.parametrize("letter,sublevel,current,amount", [
        (Rank.F, 0, 0, 25),
        (Rank.F, 3, 90, 425),
        (Rank.D, 1, 399, 1),
        (Rank.C, 0, 0, 6000),
    ])
    def test_xp_conserved(self, letter, sublevel, current, amount):
        level = make_level(letter=letter, sublevel=sublevel, current_xp=current)
        result = apply_xp(level, amount)
        assert result.banked == 0
        assert result.new_level.current_xp + result.consumed == current + amount

    def test_invariant_below_nine(self):
        level = make_level()
        for amount in [25, 50, 75, 100, 150, 200, 300]:
            level = apply_xp(level, amount).new_level
            if level.sublevel < 9:
                assert 0 <= level.current_xp < DEFAULT_RANK_TABLES.sublevel_xp(level.letter)


class TestLevelFromTotalXP:

    def test_values(self):
        assert level_from_total_xp(0) == (Rank.F, 0)
        assert level_from_total_xp(999) == (Rank.F, 9)
        assert level_from_total_xp(1000) == (Rank.E, 0)
        assert level_from_total_xp(3400) == (Rank.D, 1)
