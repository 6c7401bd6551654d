"""
Restriction evaluation for lottery placement.

Three violation variants, evaluated per (member, time block) candidate:

- AvailabilityViolation: COURSE_AVAILABILITY restriction whose date range
  covers the lottery date (optionally narrowed to a time-of-day range).
  Applies to every member.
- TimeOfDayViolation: MEMBER_CLASS/TIME restriction. The member's class and
  the weekday must apply, the block start must fall within [start, end]
  inclusive, and an optional date range must cover the lottery date.
- FrequencyViolation: MEMBER_CLASS/FREQUENCY restriction. Bookings held by
  the member in the calendar month of the lottery date, plus bookings made
  earlier in the same pass, plus this one, exceed max_count.

A violation is ignored when a matching TimeblockOverride exists. A frequency
violation on a restriction with apply_charge=True does not block: the
placement goes ahead and a ChargeSignal is emitted instead.

Inactive restrictions are never evaluated.
"""

import logging
from calendar import monthrange
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import func
from sqlmodel import Session, select

from teelottery.models.member import Member
from teelottery.models.teesheet import TimeBlock, TimeBlockMember
from teelottery.models.timeblock_restriction import (
    RestrictionCategory,
    RestrictionType,
    TimeblockOverride,
    TimeblockRestriction,
)
from teelottery.utils.time_format import parse_hhmm, sunday_based_weekday, time_to_minutes

logger = logging.getLogger(__name__)

DAY_START_MINUTES = 0
DAY_END_MINUTES = 23 * 60 + 59


@dataclass(frozen=True)
class AvailabilityViolation:
    restriction_id: int
    restriction_name: str
    time_block_id: int
    kind: str = "AVAILABILITY"


@dataclass(frozen=True)
class TimeOfDayViolation:
    restriction_id: int
    restriction_name: str
    member_id: int
    time_block_id: int
    kind: str = "TIME"


@dataclass(frozen=True)
class FrequencyViolation:
    restriction_id: int
    restriction_name: str
    member_id: int
    current_count: int
    max_count: int
    apply_charge: bool
    charge_amount: Optional[str] = None
    kind: str = "FREQUENCY"


Violation = Union[AvailabilityViolation, TimeOfDayViolation, FrequencyViolation]


@dataclass(frozen=True)
class ChargeSignal:
    """Billing signal for a frequency-limited booking allowed with a charge. Billing itself happens elsewhere."""

    member_id: int
    restriction_id: int
    amount: Optional[str]
    lottery_date: date
    entry_id: int

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["lottery_date"] = self.lottery_date.isoformat()
        return d


@dataclass
class CandidateCheck:
    allowed: bool
    violations: List[Violation] = field(default_factory=list)
    charges: List[FrequencyViolation] = field(default_factory=list)


def override_matches(
    override: TimeblockOverride,
    restriction_id: int,
    member_id: Optional[int],
    time_block_id: Optional[int],
) -> bool:
    """Restriction ids equal, and every non-null scope field on the override equals the candidate's."""
    if override.restriction_id != restriction_id:
        return False
    if override.member_id is not None and override.member_id != member_id:
        return False
    if override.time_block_id is not None and override.time_block_id != time_block_id:
        return False
    return True


def month_bounds(d: date):
    last_day = monthrange(d.year, d.month)[1]
    return date(d.year, d.month, 1), date(d.year, d.month, last_day)


def count_monthly_bookings(session: Session, member_ids: Iterable[int], on_date: date) -> Dict[int, int]:
    """Bookings per member in the calendar month containing on_date."""
    ids = list(set(member_ids))
    if not ids:
        return {}
    first, last = month_bounds(on_date)
    rows = session.exec(
        select(TimeBlockMember.member_id, func.count(TimeBlockMember.id))
        .where(
            TimeBlockMember.member_id.in_(ids),
            TimeBlockMember.booking_date >= first,
            TimeBlockMember.booking_date <= last,
        )
        .group_by(TimeBlockMember.member_id)
    ).all()
    return {member_id: int(count) for member_id, count in rows}


def _date_in_range(d: date, start: Optional[date], end: Optional[date]) -> bool:
    return start is not None and end is not None and start <= d <= end


def _weekday_applies(restriction: TimeblockRestriction, d: date) -> bool:
    days = restriction.days_of_week or []
    return not days or sunday_based_weekday(d) in days


def _minutes_in_range(restriction: TimeblockRestriction, minutes: int) -> bool:
    start = parse_hhmm(restriction.start_time)
    end = parse_hhmm(restriction.end_time)
    start = DAY_START_MINUTES if start is None else start
    end = DAY_END_MINUTES if end is None else end
    return start <= minutes <= end


class RestrictionContext:
    """
    Read-only snapshot of restrictions/overrides/booking counts for one pass,
    plus the bookings made so far in that pass.
    """

    def __init__(
        self,
        lottery_date: date,
        restrictions: List[TimeblockRestriction],
        overrides: List[TimeblockOverride],
        member_classes: Dict[int, str],
        monthly_counts: Dict[int, int],
    ):
        self.lottery_date = lottery_date
        self.restrictions = sorted(restrictions, key=lambda r: (-(r.priority or 0), r.id or 0))
        self.overrides = overrides
        self.member_classes = member_classes
        self.monthly_counts = monthly_counts
        self.pass_bookings: Dict[int, int] = defaultdict(int)
        self._weekday = sunday_based_weekday(lottery_date)

    @property
    def is_empty(self) -> bool:
        return not self.restrictions

    def _class_applies(self, restriction: TimeblockRestriction, member_id: int) -> bool:
        classes = restriction.member_classes or []
        return not classes or self.member_classes.get(member_id) in classes

    def _overridden(self, restriction: TimeblockRestriction, member_id: Optional[int], time_block_id: int) -> bool:
        if not restriction.can_override:
            return False
        return any(override_matches(o, restriction.id, member_id, time_block_id) for o in self.overrides)

    def violations_for(self, member_id: int, block: TimeBlock) -> List[Violation]:
        """Every non-overridden violation for seating member_id in block."""
        found: List[Violation] = []
        start_minutes = time_to_minutes(block.start_time)

        for r in self.restrictions:
            if r.restriction_category == RestrictionCategory.COURSE_AVAILABILITY.value:
                if not _date_in_range(self.lottery_date, r.start_date, r.end_date):
                    continue
                if (r.start_time or r.end_time) and not _minutes_in_range(r, start_minutes):
                    continue
                if self._overridden(r, member_id, block.id):
                    continue
                found.append(AvailabilityViolation(r.id, r.name, block.id))

            elif r.restriction_category == RestrictionCategory.MEMBER_CLASS.value:
                if not self._class_applies(r, member_id):
                    continue

                if r.restriction_type == RestrictionType.TIME.value:
                    if not _weekday_applies(r, self.lottery_date):
                        continue
                    if not _minutes_in_range(r, start_minutes):
                        continue
                    if (r.start_date or r.end_date) and not _date_in_range(self.lottery_date, r.start_date, r.end_date):
                        continue
                    if self._overridden(r, member_id, block.id):
                        continue
                    found.append(TimeOfDayViolation(r.id, r.name, member_id, block.id))

                elif r.restriction_type == RestrictionType.FREQUENCY.value:
                    if not r.max_count:
                        continue
                    current = self.monthly_counts.get(member_id, 0) + self.pass_bookings.get(member_id, 0)
                    if current + 1 <= r.max_count:
                        continue
                    if self._overridden(r, member_id, block.id):
                        continue
                    found.append(
                        FrequencyViolation(
                            restriction_id=r.id,
                            restriction_name=r.name,
                            member_id=member_id,
                            current_count=current,
                            max_count=r.max_count,
                            apply_charge=r.apply_charge,
                            charge_amount=r.charge_amount,
                        )
                    )
        return found

    def check(self, member_ids: Iterable[int], block: TimeBlock) -> CandidateCheck:
        """A block is allowed only if every member passes (charge-bearing frequency violations pass)."""
        result = CandidateCheck(allowed=True)
        for member_id in member_ids:
            for v in self.violations_for(member_id, block):
                result.violations.append(v)
                if isinstance(v, FrequencyViolation) and v.apply_charge:
                    result.charges.append(v)
                else:
                    result.allowed = False
        return result

    def record_booking(self, member_ids: Iterable[int]) -> None:
        for member_id in member_ids:
            self.pass_bookings[member_id] += 1


def load_restriction_context(session: Session, lottery_date: date, member_ids: Iterable[int]) -> RestrictionContext:
    ids = list(set(member_ids))
    restrictions = session.exec(
        select(TimeblockRestriction).where(TimeblockRestriction.is_active == True)  # noqa: E712
    ).all()
    overrides = session.exec(select(TimeblockOverride)).all() if restrictions else []

    member_classes: Dict[int, str] = {}
    if ids:
        for member_id, member_class in session.exec(select(Member.id, Member.member_class).where(Member.id.in_(ids))).all():
            member_classes[member_id] = member_class

    has_frequency = any(r.restriction_type == RestrictionType.FREQUENCY.value for r in restrictions)
    monthly_counts = count_monthly_bookings(session, ids, lottery_date) if has_frequency else {}

    logger.debug(
        "RESTRICTIONS: date=%s active=%s overrides=%s members=%s",
        lottery_date,
        len(restrictions),
        len(overrides),
        len(ids),
    )
    return RestrictionContext(
        lottery_date=lottery_date,
        restrictions=list(restrictions),
        overrides=list(overrides),
        member_classes=member_classes,
        monthly_counts=monthly_counts,
    )


def violation_to_dict(v: Violation) -> Dict[str, Any]:
    return asdict(v)


# ----------------------------------------------------------------------------
# Admin surface
# ----------------------------------------------------------------------------


def list_restrictions(session: Session, active_only: bool = False) -> List[TimeblockRestriction]:
    query = select(TimeblockRestriction)
    if active_only:
        query = query.where(TimeblockRestriction.is_active == True)  # noqa: E712
    return list(session.exec(query.order_by(TimeblockRestriction.priority.desc(), TimeblockRestriction.id)).all())


def create_restriction(session: Session, restriction: TimeblockRestriction) -> TimeblockRestriction:
    """Validate and persist a restriction. Raises ValueError on an inconsistent definition."""
    category = restriction.restriction_category
    rtype = restriction.restriction_type

    if category == RestrictionCategory.COURSE_AVAILABILITY.value:
        if rtype != RestrictionType.AVAILABILITY.value:
            raise ValueError("COURSE_AVAILABILITY restrictions must have type AVAILABILITY")
        if restriction.start_date is None or restriction.end_date is None:
            raise ValueError("COURSE_AVAILABILITY restrictions require start_date and end_date")
    elif category == RestrictionCategory.MEMBER_CLASS.value:
        if rtype not in (RestrictionType.TIME.value, RestrictionType.FREQUENCY.value):
            raise ValueError("MEMBER_CLASS restrictions must have type TIME or FREQUENCY")
        if rtype == RestrictionType.FREQUENCY.value and not restriction.max_count:
            raise ValueError("FREQUENCY restrictions require max_count")
    else:
        raise ValueError(f"Unknown restriction category: {category}")

    for value in (restriction.start_time, restriction.end_time):
        if value is not None and parse_hhmm(value) is None:
            raise ValueError(f"Invalid time '{value}', expected HH:MM")
    if restriction.start_date and restriction.end_date and restriction.end_date < restriction.start_date:
        raise ValueError("end_date must not be before start_date")
    if any(d not in range(7) for d in restriction.days_of_week or []):
        raise ValueError("days_of_week values must be 0 (Sunday) to 6 (Saturday)")

    session.add(restriction)
    session.commit()
    session.refresh(restriction)
    logger.info(
        "RESTRICTIONS: created id=%s category=%s type=%s",
        restriction.id,
        category,
        rtype,
    )
    return restriction


def create_override(
    session: Session,
    restriction_id: int,
    overridden_by: str,
    member_id: Optional[int] = None,
    time_block_id: Optional[int] = None,
    reason: Optional[str] = None,
) -> TimeblockOverride:
    """Raises LookupError for an unknown restriction, ValueError if it cannot be overridden."""
    restriction = session.get(TimeblockRestriction, restriction_id)
    if restriction is None:
        raise LookupError(f"Restriction {restriction_id} not found")
    if not restriction.can_override:
        raise ValueError(f"Restriction {restriction_id} cannot be overridden")

    override = TimeblockOverride(
        restriction_id=restriction_id,
        member_id=member_id,
        time_block_id=time_block_id,
        overridden_by=overridden_by,
        reason=reason,
    )
    session.add(override)
    session.commit()
    session.refresh(override)
    logger.info(
        "RESTRICTIONS: override restriction_id=%s member_id=%s time_block_id=%s by=%s",
        restriction_id,
        member_id,
        time_block_id,
        overridden_by,
    )
    return override
