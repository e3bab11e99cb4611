"""
Unit tests for the breakthrough gate
Tests: rule precedence, qualifying counts, boundary, execution arithmetic
"""

import pytest
from datetime import datetime

from progression.breakthrough import (
    DEFAULT_RULE_LOOKUPS,
    BreakthroughRule,
    can_breakthrough,
    count_qualifying_challenges,
    execute_breakthrough,
    find_qualifying_challenges,
    get_breakthrough_progress,
    get_breakthrough_rule,
)
from progression.leveling import DomainLevel
from progression.models import Challenge, DomainWeight, Submission, SubmissionStatus
from progression.ranks import DEFAULT_RANK_TABLES, BreakthroughRequirement, Rank, RankTables


def approved(sub_id, challenge_id, rank, athlete_id="ath-1", status=SubmissionStatus.APPROVED):
    return Submission(
        id=sub_id,
        athlete_id=athlete_id,
        challenge_id=challenge_id,
        achieved_value=0,
        achieved_rank=rank,
        status=status,
    )


def challenge_map(challenges):
    return {c.id: c for c in challenges}


class TestGetBreakthroughRule:

    def test_default_table(self):
        rule = get_breakthrough_rule([], "strength", Rank.F)
        assert (rule.to_rank, rule.tier_required, rule.challenge_count) == (Rank.E, Rank.E, 3)
        rule = get_breakthrough_rule([], "strength", Rank.A)
        assert (rule.to_rank, rule.tier_required, rule.challenge_count) == (Rank.S, Rank.S, 15)

    def test_from_s_is_none(self):
        assert get_breakthrough_rule([], "strength", Rank.S) is None

    def test_domain_rule_overrides_default(self):
        rules = [BreakthroughRule("strength", Rank.F, Rank.E, Rank.F, 1)]
        rule = get_breakthrough_rule(rules, "strength", Rank.F)
        assert rule.challenge_count == 1
        assert get_breakthrough_rule(rules, "endurance", Rank.F).challenge_count == 3

    def test_division_rule_overrides_domain_rule(self, division_rule):
        rules = [BreakthroughRule("strength", Rank.F, Rank.E, Rank.F, 1), division_rule]
        assert get_breakthrough_rule(rules, "strength", Rank.F, "m-18-29").challenge_count == 2
        assert get_breakthrough_rule(rules, "strength", Rank.F, "f-18-29").challenge_count == 1
        assert get_breakthrough_rule(rules, "strength", Rank.F, None).challenge_count == 1

    def test_inactive_rule_ignored(self):
        rules = [BreakthroughRule("strength", Rank.F, Rank.E, Rank.F, 1, is_active=False)]
        assert get_breakthrough_rule(rules, "strength", Rank.F).challenge_count == 3

    def test_extra_lookup_tier(self):
        """A new precedence tier is a single list entry"""
        def always_one(rules, domain_id, from_rank, to_rank, division_id, tables):
            return BreakthroughRequirement(from_rank, to_rank, Rank.F, 1)

        lookups = [always_one] + DEFAULT_RULE_LOOKUPS
        assert get_breakthrough_rule([], "strength", Rank.C, lookups=lookups).challenge_count == 1


class TestQualifyingChallenges:

    def test_counts_rank_at_or_above(self, strength_challenges):
        challenges = challenge_map(strength_challenges)
        submissions = [
            approved("s1", "str-1", Rank.E),
            approved("s2", "str-2", Rank.S),
            approved("s3", "str-3", Rank.F),
        ]
        assert count_qualifying_challenges(submissions, challenges, "ath-1", "strength", Rank.E) == 2

    def test_excludes_unapproved_and_other_athletes(self, strength_challenges):
        challenges = challenge_map(strength_challenges)
        submissions = [
            approved("s1", "str-1", Rank.E, status=SubmissionStatus.PENDING),
            approved("s2", "str-2", Rank.E, status=SubmissionStatus.REJECTED),
            approved("s3", "str-3", Rank.E, athlete_id="other"),
            approved("s4", "str-4", None),
        ]
        assert count_qualifying_challenges(submissions, challenges, "ath-1", "strength", Rank.E) == 0

    def test_primary_domain_only(self, burpees):
        challenges = challenge_map([burpees])
        submissions = [approved("s1", "burpees", Rank.A)]
        assert count_qualifying_challenges(submissions, challenges, "ath-1", "strength", Rank.E) == 1
        assert count_qualifying_challenges(submissions, challenges, "ath-1", "skill", Rank.E) == 0

    def test_inactive_challenge_excluded(self):
        inactive = Challenge(id="old", name="Old", primary=DomainWeight("strength", 100), is_active=False)
        submissions = [approved("s1", "old", Rank.S)]
        assert count_qualifying_challenges(submissions, {"old": inactive}, "ath-1", "strength", Rank.F) == 0

    def test_distinct_submissions(self, strength_challenges):
        challenges = challenge_map(strength_challenges)
        sub = approved("s1", "str-1", Rank.E)
        found = find_qualifying_challenges([sub, sub], challenges, "ath-1", "strength", Rank.E)
        assert len(found) == 1
        assert found[0].challenge_name == "Strength Challenge 1"


class TestBreakthroughBoundary:
    """Exactly challenge_count qualifies, one fewer does not"""

    @pytest.mark.parametrize("from_rank,tier,count", [
        (Rank.F, Rank.E, 3),
        (Rank.E, Rank.D, 5),
        (Rank.D, Rank.C, 7),
        (Rank.C, Rank.B, 10),
    ])
    def test_boundary(self, strength_challenges, from_rank, tier, count):
        challenges = challenge_map(strength_challenges)
        exact = [approved(f"s{i}", f"str-{i}", tier) for i in range(1, count + 1)]

        assert can_breakthrough([], exact, challenges, "ath-1", "strength", from_rank)
        assert not can_breakthrough([], exact[:-1], challenges, "ath-1", "strength", from_rank)

    def test_s_cannot_break_through(self, strength_challenges):
        challenges = challenge_map(strength_challenges)
        subs = [approved(f"s{i}", f"str-{i}", Rank.S) for i in range(1, 13)]
        assert not can_breakthrough([], subs, challenges, "ath-1", "strength", Rank.S)

    def test_progress(self, strength_challenges):
        challenges = challenge_map(strength_challenges)
        subs = [approved(f"s{i}", f"str-{i}", Rank.B) for i in range(1, 8)]
        progress = get_breakthrough_progress([], subs, challenges, "ath-1", "strength", Rank.C)
        assert progress.current_progress == 7
        assert progress.challenge_count == 10
        assert not progress.is_complete

    def test_progress_message(self, strength_challenges):
        challenges = challenge_map(strength_challenges)
        subs = [approved(f"s{i}", f"str-{i}", Rank.B) for i in range(1, 8)]
        progress = get_breakthrough_progress([], subs, challenges, "ath-1", "strength", Rank.C)
        assert progress.message == "7/10 challenges completed"
        assert len(progress.qualifying_challenges) == 7


class TestExecuteBreakthrough:

    def test_scenario_banked_conversion(self):
        """D9 banked 150, C = 50 XP/sublevel → C3 with 0 banked"""
        tables = RankTables(xp_per_sublevel={**DEFAULT_RANK_TABLES.xp_per_sublevel, Rank.C: 50})
        level = DomainLevel("ath-1", "strength", Rank.D, 9, current_xp=0, banked_xp=150, breakthrough_ready=True)

        new_level = execute_breakthrough(level, tables)

        assert new_level.letter is Rank.C
        assert new_level.sublevel == 3
        assert new_level.banked_xp == 0
        assert not new_level.breakthrough_ready
        assert new_level.breakthrough_achieved_at is not None

    def test_leftover_stays_banked(self):
        level = DomainLevel("ath-1", "strength", Rank.F, 9, banked_xp=450)
        new_level = execute_breakthrough(level)
        # E = 200 XP per sublevel
        assert new_level.sublevel == 2
        assert new_level.banked_xp == 50
        assert new_level.current_xp == 0

    def test_current_xp_kept_below_new_threshold(self):
        level = DomainLevel("ath-1", "strength", Rank.F, 4, current_xp=80, banked_xp=450)
        new_level = execute_breakthrough(level)
        assert (new_level.sublevel, new_level.current_xp, new_level.banked_xp) == (2, 80, 50)

    def test_current_xp_over_smaller_threshold_moves_to_bank(self):
        """D3 with 300 current XP, C = 50 XP/sublevel → C6 with nothing left over"""
        tables = RankTables(xp_per_sublevel={**DEFAULT_RANK_TABLES.xp_per_sublevel, Rank.C: 50})
        level = DomainLevel("ath-1", "strength", Rank.D, 3, current_xp=300)

        new_level = execute_breakthrough(level, tables)

        assert new_level.letter is Rank.C
        assert new_level.sublevel == 6
        assert new_level.current_xp == 0
        assert new_level.banked_xp == 0
        assert new_level.current_xp < tables.sublevel_xp(Rank.C)

    def test_current_xp_banked_when_capped(self):
        level = DomainLevel("ath-1", "strength", Rank.F, 5, current_xp=60, banked_xp=5000)
        new_level = execute_breakthrough(level)
        assert new_level.sublevel == 9
        assert new_level.current_xp == 0
        assert new_level.banked_xp == 5060 - 9 * 200

    def test_sublevel_capped_at_nine(self):
        level = DomainLevel("ath-1", "strength", Rank.F, 9, banked_xp=5000)
        new_level = execute_breakthrough(level)
        assert new_level.sublevel == 9
        assert new_level.banked_xp == 5000 - 9 * 200

    def test_timestamp(self):
        now = datetime(2026, 1, 1, 12, 0)
        new_level = execute_breakthrough(DomainLevel("a", "d", Rank.B, 9), now=now)
        assert new_level.letter is Rank.A
        assert new_level.breakthrough_achieved_at == now

    def test_from_s_raises(self):
        with pytest.raises(ValueError):
            execute_breakthrough(DomainLevel("a", "d", Rank.S, 9))

    def test_input_not_mutated(self):
        level = DomainLevel("a", "d", Rank.F, 9, banked_xp=400)
        execute_breakthrough(level)
        assert level.letter is Rank.F
        assert level.banked_xp == 400
