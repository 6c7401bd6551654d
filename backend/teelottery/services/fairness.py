"""
Monthly fairness accounting.

Each member has one MemberFairnessScore row per "YYYY-MM" month. Rows are
created lazily (bulk, conflict-do-nothing) and never carried across months.

Score:
    base  = 20 if fulfillment_rate < 0.5 else 10 if fulfillment_rate < 0.7 else 0
    score = base + min(2 * days_without_good_time, 30)

Higher score = member has been under-served this month = higher lottery priority.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlmodel import Session, select

from teelottery.models.member import Member
from teelottery.models.member_fairness_score import MemberFairnessScore
from teelottery.utils.sql import insert_ignore

logger = logging.getLogger(__name__)

LOW_RATE_THRESHOLD = 0.5
MEDIUM_RATE_THRESHOLD = 0.7
LOW_RATE_POINTS = 20
MEDIUM_RATE_POINTS = 10
POINTS_PER_DAY_WITHOUT = 2
MAX_DAYS_WITHOUT_POINTS = 30


def compute_fairness_score(fulfillment_rate: float, days_without_good_time: int) -> int:
    if fulfillment_rate < LOW_RATE_THRESHOLD:
        base = LOW_RATE_POINTS
    elif fulfillment_rate < MEDIUM_RATE_THRESHOLD:
        base = MEDIUM_RATE_POINTS
    else:
        base = 0
    return base + min(days_without_good_time * POINTS_PER_DAY_WITHOUT, MAX_DAYS_WITHOUT_POINTS)


def fairness_band(score: int) -> str:
    """Display band: > 20 high, 10-20 medium, < 10 low."""
    if score > 20:
        return "high"
    if score >= 10:
        return "medium"
    return "low"


def _zero_row(member_id: int, month: str, now: datetime) -> Dict:
    return {
        "member_id": member_id,
        "current_month": month,
        "total_entries_month": 0,
        "preferences_granted_month": 0,
        "preference_fulfillment_rate": 0.0,
        "days_without_good_time": 0,
        "fairness_score": 0,
        "last_updated": now,
    }


def ensure_month_rows(session: Session, month: str, member_ids: Optional[Iterable[int]] = None) -> int:
    """
    Create zeroed fairness rows for month. Existing rows are left untouched.

    member_ids=None means every member. Returns the number of rows created.
    Commits.
    """
    if member_ids is None:
        ids: List[int] = list(session.exec(select(Member.id)).all())
    else:
        ids = sorted(set(member_ids))

    now = datetime.utcnow()
    created = insert_ignore(session, MemberFairnessScore, [_zero_row(mid, month, now) for mid in ids])
    session.commit()

    if created:
        logger.info("FAIRNESS: month=%s rows_created=%s", month, created)
    return created


def get_fairness_rows(session: Session, month: str, member_ids: Iterable[int]) -> Dict[int, MemberFairnessScore]:
    ids = list(set(member_ids))
    if not ids:
        return {}
    rows = session.exec(
        select(MemberFairnessScore).where(
            MemberFairnessScore.current_month == month,
            MemberFairnessScore.member_id.in_(ids),
        )
    ).all()
    return {r.member_id: r for r in rows}


def apply_outcome(row: MemberFairnessScore, granted: bool) -> MemberFairnessScore:
    """Update one row in place for a single lottery outcome (no commit)."""
    row.total_entries_month += 1
    if granted:
        row.preferences_granted_month += 1
        row.days_without_good_time = 0
    else:
        row.days_without_good_time += 1
    row.preference_fulfillment_rate = row.preferences_granted_month / row.total_entries_month
    row.fairness_score = compute_fairness_score(row.preference_fulfillment_rate, row.days_without_good_time)
    row.last_updated = datetime.utcnow()
    return row


def record_preference_outcome(session: Session, member_id: int, month: str, granted: bool) -> MemberFairnessScore:
    """Count one lottery outcome toward member's row for month, creating the row if needed. Commits."""
    row = session.get(MemberFairnessScore, (member_id, month))
    if row is None:
        ensure_month_rows(session, month, [member_id])
        row = session.get(MemberFairnessScore, (member_id, month))

    apply_outcome(row, granted)
    session.add(row)
    session.commit()
    session.refresh(row)

    logger.debug(
        "FAIRNESS: member_id=%s month=%s granted=%s score=%s",
        member_id,
        month,
        granted,
        row.fairness_score,
    )
    return row
