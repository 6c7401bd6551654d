"""
Tests for the lottery priority comparator
"""

from datetime import datetime, timedelta
from functools import cmp_to_key

from teelottery.models.lottery_algorithm_config import LotteryAlgorithmConfig, default_speed_bonuses
from teelottery.models.member_fairness_score import MemberFairnessScore
from teelottery.models.member_speed_profile import MemberSpeedProfile
from teelottery.services.algorithm_config import AlgorithmConfigSnapshot, snapshot_config
from teelottery.services.priority import EntryPriority, build_priority, compare_priority, priority_sort_key

T0 = datetime(2025, 11, 1, 9, 0, 0)


def _p(entry_id, fairness=0, bonus=0, adjustment=0, is_group=False, submitted=T0, groups_first=True):
    return EntryPriority(
        entry_id=entry_id,
        is_group=is_group,
        fairness_score=fairness,
        speed_bonus=bonus,
        admin_adjustment=adjustment,
        submission_timestamp=submitted,
        groups_first=groups_first,
    )


def _order(priorities):
    return [p.entry_id for p in sorted(priorities, key=priority_sort_key)]


def test_higher_composite_first():
    assert _order([_p(1, fairness=5), _p(2, fairness=20), _p(3, fairness=10)]) == [2, 3, 1]


def test_composite_sums_components():
    p = _p(1, fairness=10, bonus=5, adjustment=-3)
    assert p.composite == 12


def test_admin_adjustment_can_outweigh_fairness():
    # 10 + 0 + 15 = 25 beats 20 + 0 + 0
    assert _order([_p(1, fairness=20), _p(2, fairness=10, adjustment=15)]) == [2, 1]


def test_equal_composite_breaks_on_fairness_then_bonus_then_adjustment():
    a = _p(1, fairness=10, bonus=0, adjustment=5)
    b = _p(2, fairness=15, bonus=0, adjustment=0)
    c = _p(3, fairness=10, bonus=5, adjustment=0)
    assert _order([a, c, b]) == [2, 3, 1]


def test_submission_timestamp_then_id_final_tiebreak():
    early = _p(7, submitted=T0)
    late = _p(3, submitted=T0 + timedelta(minutes=1))
    same_time_lower_id = _p(2, submitted=T0 + timedelta(minutes=1))
    assert _order([late, early, same_time_lower_id]) == [7, 2, 3]


def test_groups_first_when_enabled():
    individual = _p(1, fairness=30)
    group = _p(2, fairness=0, is_group=True)
    assert _order([individual, group]) == [2, 1]


def test_groups_not_prioritised_when_disabled():
    individual = _p(1, fairness=30, groups_first=False)
    group = _p(2, fairness=0, is_group=True, groups_first=False)
    assert _order([individual, group]) == [1, 2]


def test_compare_priority_is_total():
    a = _p(1, fairness=10)
    b = _p(2, fairness=10)
    assert compare_priority(a, b) == -1
    assert compare_priority(b, a) == 1
    assert compare_priority(a, a) == 0
    assert [p.entry_id for p in sorted([b, a], key=cmp_to_key(compare_priority))] == [1, 2]


def test_build_priority_reads_organizer_components():
    config = snapshot_config(LotteryAlgorithmConfig(speed_bonuses=default_speed_bonuses()))
    fairness = MemberFairnessScore(member_id=1, current_month="2025-11", fairness_score=12)
    profile = MemberSpeedProfile(member_id=1, speed_tier="FAST", admin_priority_adjustment=-2)

    p = build_priority(
        entry_id=9,
        is_group=False,
        preferred_window="MORNING",
        submission_timestamp=T0,
        fairness_row=fairness,
        speed_profile=profile,
        config=config,
    )

    assert p.fairness_score == 12
    assert p.speed_bonus == 5
    assert p.admin_adjustment == -2
    assert p.composite == 15


def test_build_priority_defaults_without_rows():
    config = AlgorithmConfigSnapshot(
        fast_threshold_minutes=235,
        average_threshold_minutes=245,
        speed_bonuses=(("MIDDAY", 2, 1, 0),),
    )

    p = build_priority(entry_id=1, is_group=True, preferred_window="MIDDAY", submission_timestamp=T0, config=config)

    # No profile -> AVERAGE tier bonus, no adjustment, no fairness
    assert (p.fairness_score, p.speed_bonus, p.admin_adjustment) == (0, 1, 0)
