"""
Member speed (pace-of-play) profiles.

Pace is tracked incrementally: each completed round adds to total_minutes
and round_count, and average_minutes = round(total_minutes / round_count).
Rounds outside [MIN_ROUND_MINUTES, MAX_ROUND_MINUTES] are treated as bad
data (unfinished round, forgotten check-out) and ignored.

Tier rule (thresholds from LotteryAlgorithmConfig):
    average <= fast threshold     -> FAST
    average <= average threshold  -> AVERAGE
    otherwise                     -> SLOW

A profile with manual_override=True is never reclassified automatically.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from sqlmodel import Session, select

from teelottery.models.member import Member
from teelottery.models.member_speed_profile import MemberSpeedProfile, SpeedTier
from teelottery.services.algorithm_config import AlgorithmConfigSnapshot, get_config_snapshot
from teelottery.services.maintenance import MaintenanceResult

logger = logging.getLogger(__name__)

MIN_ROUND_MINUTES = 180
MAX_ROUND_MINUTES = 360
MIN_ADMIN_ADJUSTMENT = -20
MAX_ADMIN_ADJUSTMENT = 20

RECLASSIFY_MAINTENANCE_TYPE = "SPEED_RECLASSIFY"


@dataclass
class SpeedProfileUpdate:
    speed_tier: Optional[str] = None
    admin_priority_adjustment: Optional[int] = None
    manual_override: Optional[bool] = None
    notes: Optional[str] = None


def classify_speed_tier(average_minutes: Optional[int], config: AlgorithmConfigSnapshot) -> Optional[str]:
    """Map an average round time to a tier; None when there is no pace data."""
    if average_minutes is None:
        return None
    if average_minutes <= config.fast_threshold_minutes:
        return SpeedTier.FAST.value
    if average_minutes <= config.average_threshold_minutes:
        return SpeedTier.AVERAGE.value
    return SpeedTier.SLOW.value


def get_or_create_profile(session: Session, member_id: int) -> MemberSpeedProfile:
    profile = session.get(MemberSpeedProfile, member_id)
    if profile is None:
        profile = MemberSpeedProfile(member_id=member_id)
        session.add(profile)
    return profile


def is_valid_round(round_minutes: int) -> bool:
    return MIN_ROUND_MINUTES <= round_minutes <= MAX_ROUND_MINUTES


def record_completed_round(session: Session, member_ids: Iterable[int], round_minutes: int) -> List[MemberSpeedProfile]:
    """
    Fold one completed round into each member's running pace average.

    Returns the updated profiles ([] when the round is out of range). Commits.
    """
    if not is_valid_round(round_minutes):
        logger.info(
            "SPEED_PROFILE: ignoring abnormal round minutes=%s members=%s",
            round_minutes,
            list(member_ids),
        )
        return []

    config = get_config_snapshot(session)
    now = datetime.utcnow()
    updated: List[MemberSpeedProfile] = []

    for member_id in sorted(set(member_ids)):
        profile = get_or_create_profile(session, member_id)
        profile.total_minutes = (profile.total_minutes or 0) + round_minutes
        profile.round_count = (profile.round_count or 0) + 1
        profile.average_minutes = round(profile.total_minutes / profile.round_count)
        profile.has_data = True
        if not profile.manual_override:
            profile.speed_tier = classify_speed_tier(profile.average_minutes, config)
        profile.last_calculated = now
        session.add(profile)
        updated.append(profile)

    session.commit()
    for profile in updated:
        session.refresh(profile)
    return updated


def update_member_speed_profile(session: Session, member_id: int, update: SpeedProfileUpdate) -> MemberSpeedProfile:
    """
    Admin edit of a member's tier / priority adjustment / notes.

    Raises ValueError for an unknown member, unknown tier, or an adjustment
    outside [-20, 20]. A tier that disagrees with the rule output for the
    member's pace data forces manual_override on.
    """
    if session.get(Member, member_id) is None:
        raise ValueError(f"Member {member_id} not found")

    if update.admin_priority_adjustment is not None and not (
        MIN_ADMIN_ADJUSTMENT <= update.admin_priority_adjustment <= MAX_ADMIN_ADJUSTMENT
    ):
        raise ValueError(
            f"admin_priority_adjustment must be between {MIN_ADMIN_ADJUSTMENT} and {MAX_ADMIN_ADJUSTMENT}"
        )
    if update.speed_tier is not None and update.speed_tier not in {t.value for t in SpeedTier}:
        raise ValueError(f"Unknown speed tier: {update.speed_tier}")

    profile = get_or_create_profile(session, member_id)

    if update.manual_override is not None:
        profile.manual_override = update.manual_override

    if update.speed_tier is not None:
        config = get_config_snapshot(session)
        # No pace data: the rule's answer is the AVERAGE default
        rule_tier = classify_speed_tier(profile.average_minutes, config) or SpeedTier.AVERAGE.value
        profile.speed_tier = update.speed_tier
        if update.speed_tier != rule_tier:
            profile.manual_override = True

    if update.admin_priority_adjustment is not None:
        profile.admin_priority_adjustment = update.admin_priority_adjustment
    if update.notes is not None:
        profile.notes = update.notes

    profile.updated_at = datetime.utcnow()
    session.add(profile)
    session.commit()
    session.refresh(profile)

    logger.info(
        "SPEED_PROFILE: member_id=%s tier=%s override=%s adjustment=%s",
        member_id,
        profile.speed_tier,
        profile.manual_override,
        profile.admin_priority_adjustment,
    )
    return profile


def reclassify_all_speed_tiers(session: Session) -> MaintenanceResult:
    """Re-apply the tier rule to every non-overridden profile with pace data. Commits."""
    config = get_config_snapshot(session)
    profiles = session.exec(
        select(MemberSpeedProfile).where(
            MemberSpeedProfile.manual_override == False,  # noqa: E712
            MemberSpeedProfile.has_data == True,  # noqa: E712
        )
    ).all()

    now = datetime.utcnow()
    changed = 0
    for profile in profiles:
        new_tier = classify_speed_tier(profile.average_minutes, config)
        if new_tier is not None and new_tier != profile.speed_tier:
            profile.speed_tier = new_tier
            changed += 1
        profile.last_calculated = now
        session.add(profile)
    session.commit()

    logger.info("SPEED_PROFILE: reclassified scanned=%s changed=%s", len(profiles), changed)
    return MaintenanceResult(
        success=True,
        maintenance_type=RECLASSIFY_MAINTENANCE_TYPE,
        month=None,
        records_affected=changed,
        notes=f"Reclassified {changed} of {len(profiles)} profiles",
    )


def reset_all_admin_priority_adjustments(session: Session) -> int:
    """Zero every non-zero admin adjustment. Returns profiles changed. Commits."""
    profiles = session.exec(
        select(MemberSpeedProfile).where(MemberSpeedProfile.admin_priority_adjustment != 0)
    ).all()
    for profile in profiles:
        profile.admin_priority_adjustment = 0
        session.add(profile)
    session.commit()
    logger.info("SPEED_PROFILE: reset admin adjustments count=%s", len(profiles))
    return len(profiles)


def list_member_profiles(session: Session) -> List[dict]:
    """All members with their speed profile (defaults when none exists), ordered by name."""
    members = session.exec(select(Member).order_by(Member.last_name, Member.first_name, Member.id)).all()
    profiles = {p.member_id: p for p in session.exec(select(MemberSpeedProfile)).all()}

    out = []
    for m in members:
        p = profiles.get(m.id)
        out.append(
            {
                "member_id": m.id,
                "name": m.full_name,
                "member_number": m.member_number,
                "member_class": m.member_class,
                "speed_tier": p.speed_tier if p else SpeedTier.AVERAGE.value,
                "average_minutes": p.average_minutes if p else None,
                "round_count": p.round_count if p else 0,
                "has_data": p.has_data if p else False,
                "manual_override": p.manual_override if p else False,
                "admin_priority_adjustment": p.admin_priority_adjustment if p else 0,
                "notes": p.notes if p else None,
            }
        )
    return out
