"""
Lottery priority ordering.

Each request gets three components, all read from the organizer (or the
individual member):

- fairness score   (monthly fairness row)
- speed bonus      (config bonus for the preferred window and speed tier)
- admin adjustment (speed profile, -20..+20)

composite = fairness + speed bonus + admin adjustment

Order (highest priority first):
    groups first (only when process_groups_first)
    -> composite desc -> fairness desc -> speed bonus desc -> admin adjustment desc
    -> submission timestamp asc -> entry id asc

The order is total: two distinct entries never compare equal.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from teelottery.models.member_fairness_score import MemberFairnessScore
from teelottery.models.member_speed_profile import MemberSpeedProfile, SpeedTier
from teelottery.services.algorithm_config import AlgorithmConfigSnapshot


@dataclass(frozen=True)
class EntryPriority:
    entry_id: int
    is_group: bool
    fairness_score: int
    speed_bonus: int
    admin_adjustment: int
    submission_timestamp: datetime
    groups_first: bool = True

    @property
    def composite(self) -> int:
        return self.fairness_score + self.speed_bonus + self.admin_adjustment

    def to_dict(self) -> Dict:
        return {
            "entry_id": self.entry_id,
            "is_group": self.is_group,
            "fairness_score": self.fairness_score,
            "speed_bonus": self.speed_bonus,
            "admin_adjustment": self.admin_adjustment,
            "composite": self.composite,
        }


def priority_sort_key(p: EntryPriority) -> Tuple:
    """Ascending sort on this key yields highest priority first."""
    group_rank = 0 if (p.groups_first and p.is_group) else 1
    return (
        group_rank,
        -p.composite,
        -p.fairness_score,
        -p.speed_bonus,
        -p.admin_adjustment,
        p.submission_timestamp,
        p.entry_id,
    )


def compare_priority(a: EntryPriority, b: EntryPriority) -> int:
    """-1 if a goes before b, 1 if after, 0 only for the same entry."""
    ka, kb = priority_sort_key(a), priority_sort_key(b)
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def build_priority(
    entry_id: int,
    is_group: bool,
    preferred_window: str,
    submission_timestamp: datetime,
    fairness_row: Optional[MemberFairnessScore] = None,
    speed_profile: Optional[MemberSpeedProfile] = None,
    config: Optional[AlgorithmConfigSnapshot] = None,
) -> EntryPriority:
    fairness = fairness_row.fairness_score if fairness_row is not None else 0
    tier = speed_profile.speed_tier if speed_profile is not None else SpeedTier.AVERAGE.value
    adjustment = speed_profile.admin_priority_adjustment if speed_profile is not None else 0
    bonus = config.speed_bonus_for(preferred_window, tier) if config is not None else 0
    return EntryPriority(
        entry_id=entry_id,
        is_group=is_group,
        fairness_score=fairness or 0,
        speed_bonus=bonus,
        admin_adjustment=adjustment or 0,
        submission_timestamp=submission_timestamp,
        groups_first=config.process_groups_first if config is not None else True,
    )
