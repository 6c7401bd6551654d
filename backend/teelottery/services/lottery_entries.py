"""
Lottery entry submission, validation and admin edits.

An entry is INDIVIDUAL when it holds one member and GROUP when it holds the
organizer plus 1-3 other members (optionally topped up with fills, total
size <= 4). A member may hold at most one non-cancelled entry per date.

Submission never checks capacity: entries are stored PENDING and placed (or
not) by the lottery engine.

Validation failures are reported as SubmissionResult(success=False,
error_code=...) rather than raised to callers.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from teelottery.models.lottery_entry import EntryStatus, LotteryEntry, LotteryEntryFill
from teelottery.models.member import Member
from teelottery.models.teesheet import TimeBlock, TimeBlockFill, TimeBlockMember
from teelottery.services.lottery_data import block_occupancy, get_active_entries_for_date
from teelottery.services.time_windows import VALID_WINDOWS

logger = logging.getLogger(__name__)

MAX_GROUP_SIZE = 4
MIN_GROUP_MEMBERS = 2

# Submission error codes
MEMBER_NOT_FOUND = "MEMBER_NOT_FOUND"
INVALID_WINDOW = "INVALID_WINDOW"
INVALID_GROUP_SIZE = "INVALID_GROUP_SIZE"
DUPLICATE_INDIVIDUAL_ENTRY = "DUPLICATE_INDIVIDUAL_ENTRY"
MEMBER_IN_GROUP_ENTRY = "MEMBER_IN_GROUP_ENTRY"
MEMBERS_HAVE_INDIVIDUAL_ENTRIES = "MEMBERS_HAVE_INDIVIDUAL_ENTRIES"
DUPLICATE_GROUP_ENTRY = "DUPLICATE_GROUP_ENTRY"
MEMBERS_IN_OTHER_GROUP = "MEMBERS_IN_OTHER_GROUP"
ENTRY_NOT_PENDING = "ENTRY_NOT_PENDING"
INVALID_FILL = "INVALID_FILL"


class EntryValidationError(Exception):
    """Submission rejected; converted to SubmissionResult at the service boundary"""

    def __init__(self, error_code: str, message: str):
        super().__init__(message)
        self.error_code = error_code
        self.message = message


class EntryNotFoundError(Exception):
    pass


class ManualAssignmentError(Exception):
    pass


# ----------------------------------------------------------------------------
# Engine input variants
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class FillSpec:
    fill_type: str
    custom_name: Optional[str] = None


@dataclass(frozen=True)
class IndividualRequest:
    entry_id: int
    member_id: int
    preferred_window: str
    alternate_window: Optional[str]
    submission_timestamp: datetime

    is_group = False
    fills: Tuple[FillSpec, ...] = ()

    @property
    def size(self) -> int:
        return 1

    @property
    def priority_member_id(self) -> int:
        return self.member_id

    @property
    def all_member_ids(self) -> Tuple[int, ...]:
        return (self.member_id,)


@dataclass(frozen=True)
class GroupRequest:
    entry_id: int
    organizer_id: int
    member_ids: Tuple[int, ...]
    preferred_window: str
    alternate_window: Optional[str]
    submission_timestamp: datetime
    fills: Tuple[FillSpec, ...] = ()

    is_group = True

    @property
    def size(self) -> int:
        return len(self.member_ids) + len(self.fills)

    @property
    def priority_member_id(self) -> int:
        return self.organizer_id

    @property
    def all_member_ids(self) -> Tuple[int, ...]:
        return self.member_ids


LotteryRequest = Union[IndividualRequest, GroupRequest]


def resolve_request(entry: LotteryEntry, fills: Sequence[LotteryEntryFill] = ()) -> LotteryRequest:
    """Turn a stored entry into the engine's request variant."""
    if entry.is_group:
        # Organizer first, remaining members in stored order
        members = [entry.organizer_id] + [m for m in entry.member_ids if m != entry.organizer_id]
        return GroupRequest(
            entry_id=entry.id,
            organizer_id=entry.organizer_id,
            member_ids=tuple(members),
            preferred_window=entry.preferred_window,
            alternate_window=entry.alternate_window,
            submission_timestamp=entry.submission_timestamp,
            fills=tuple(FillSpec(f.fill_type, f.custom_name) for f in fills),
        )
    return IndividualRequest(
        entry_id=entry.id,
        member_id=entry.organizer_id,
        preferred_window=entry.preferred_window,
        alternate_window=entry.alternate_window,
        submission_timestamp=entry.submission_timestamp,
    )


# ----------------------------------------------------------------------------
# Submission
# ----------------------------------------------------------------------------


@dataclass
class EntrySubmission:
    lottery_date: date
    preferred_window: str
    alternate_window: Optional[str] = None
    # Other members of a group (organizer may be included or not); empty = individual
    member_ids: List[int] = field(default_factory=list)
    fills: List[FillSpec] = field(default_factory=list)


class SubmissionResult:
    """Structured result from a submission or edit"""

    def __init__(
        self,
        success: bool,
        entry: Optional[LotteryEntry] = None,
        error_code: Optional[str] = None,
        error: Optional[str] = None,
    ):
        self.success = success
        self.entry = entry
        self.error_code = error_code
        self.error = error

    @classmethod
    def failed(cls, exc: EntryValidationError) -> "SubmissionResult":
        return cls(success=False, error_code=exc.error_code, error=exc.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "entry_id": self.entry.id if self.entry else None,
            "error_code": self.error_code,
            "error": self.error,
        }


def _validate_windows(preferred: Optional[str], alternate: Optional[str]) -> None:
    if preferred not in VALID_WINDOWS:
        raise EntryValidationError(INVALID_WINDOW, f"Invalid preferred window: {preferred}")
    if alternate is not None:
        if alternate not in VALID_WINDOWS:
            raise EntryValidationError(INVALID_WINDOW, f"Invalid alternate window: {alternate}")
        if alternate == preferred:
            raise EntryValidationError(INVALID_WINDOW, "Alternate window must differ from preferred window")


def _normalize_members(organizer_id: int, member_ids: Sequence[int]) -> List[int]:
    """Organizer first, then the other members in the given order, deduplicated."""
    others: List[int] = []
    for mid in member_ids:
        if mid == organizer_id:
            continue
        if mid in others:
            raise EntryValidationError(INVALID_GROUP_SIZE, f"Member {mid} listed more than once")
        others.append(mid)
    return [organizer_id] + others


def _validate_shape(organizer_id: int, member_ids: Sequence[int], fills: Sequence[FillSpec]) -> List[int]:
    if not member_ids or list(member_ids) == [organizer_id]:
        if fills:
            raise EntryValidationError(INVALID_GROUP_SIZE, "Fills are only allowed on group entries")
        return [organizer_id]

    members = _normalize_members(organizer_id, member_ids)
    if not (MIN_GROUP_MEMBERS <= len(members) <= MAX_GROUP_SIZE):
        raise EntryValidationError(
            INVALID_GROUP_SIZE,
            f"A group must have {MIN_GROUP_MEMBERS}-{MAX_GROUP_SIZE} members including the organizer",
        )
    if len(members) + len(fills) > MAX_GROUP_SIZE:
        raise EntryValidationError(
            INVALID_GROUP_SIZE, f"Group size including fills cannot exceed {MAX_GROUP_SIZE}"
        )
    for f in fills:
        if not f.fill_type or not f.fill_type.strip():
            raise EntryValidationError(INVALID_FILL, "Fill type is required")
    return members


def _validate_members_exist(session: Session, organizer_id: int, member_ids: Sequence[int]) -> None:
    if session.get(Member, organizer_id) is None:
        raise EntryValidationError(MEMBER_NOT_FOUND, f"Member {organizer_id} not found")
    found = set(session.exec(select(Member.id).where(Member.id.in_(list(member_ids)))).all())
    missing = [mid for mid in member_ids if mid not in found]
    if missing:
        raise EntryValidationError(MEMBER_NOT_FOUND, f"Members not found: {missing}")


def _check_conflicts(
    session: Session,
    lottery_date: date,
    organizer_id: int,
    members: List[int],
    exclude_entry_id: Optional[int] = None,
) -> None:
    """Enforce one non-cancelled entry per member per date."""
    existing = [e for e in get_active_entries_for_date(session, lottery_date) if e.id != exclude_entry_id]
    individuals = {e.organizer_id: e for e in existing if not e.is_group}
    groups = [e for e in existing if e.is_group]

    if len(members) == 1:
        member_id = members[0]
        if member_id in individuals:
            raise EntryValidationError(
                DUPLICATE_INDIVIDUAL_ENTRY, "Member already has a lottery entry for this date"
            )
        if any(member_id in (g.member_ids or []) for g in groups):
            raise EntryValidationError(
                MEMBER_IN_GROUP_ENTRY, "Member is already part of a group entry for this date"
            )
        return

    if any(g.organizer_id == organizer_id for g in groups):
        raise EntryValidationError(DUPLICATE_GROUP_ENTRY, "Organizer already has a group entry for this date")

    with_individual = [mid for mid in members if mid in individuals]
    if with_individual:
        raise EntryValidationError(
            MEMBERS_HAVE_INDIVIDUAL_ENTRIES,
            f"Members already have individual entries for this date: {with_individual}",
        )

    in_other_group = [mid for mid in members if any(mid in (g.member_ids or []) for g in groups)]
    if in_other_group:
        raise EntryValidationError(
            MEMBERS_IN_OTHER_GROUP,
            f"Members are already part of another group for this date: {in_other_group}",
        )


def submit_entry(session: Session, organizer_id: int, submission: EntrySubmission) -> SubmissionResult:
    """Validate and store a PENDING entry. Never raises for validation failures."""
    try:
        if session.get(Member, organizer_id) is None:
            raise EntryValidationError(MEMBER_NOT_FOUND, f"Member {organizer_id} not found")
        _validate_windows(submission.preferred_window, submission.alternate_window)
        members = _validate_shape(organizer_id, submission.member_ids, submission.fills)
        _validate_members_exist(session, organizer_id, members)
        _check_conflicts(session, submission.lottery_date, organizer_id, members)
    except EntryValidationError as e:
        logger.info(
            "LOTTERY_ENTRY: rejected organizer_id=%s date=%s code=%s",
            organizer_id,
            submission.lottery_date,
            e.error_code,
        )
        return SubmissionResult.failed(e)

    now = datetime.utcnow()
    entry = LotteryEntry(
        lottery_date=submission.lottery_date,
        member_ids=members,
        organizer_id=organizer_id,
        preferred_window=submission.preferred_window,
        alternate_window=submission.alternate_window,
        status=EntryStatus.PENDING.value,
        submission_timestamp=now,
    )
    session.add(entry)
    session.flush()
    for f in submission.fills:
        session.add(LotteryEntryFill(lottery_entry_id=entry.id, fill_type=f.fill_type.strip(), custom_name=f.custom_name))
    session.commit()
    session.refresh(entry)

    logger.info(
        "LOTTERY_ENTRY: submitted entry_id=%s organizer_id=%s date=%s size=%s preferred=%s alternate=%s",
        entry.id,
        organizer_id,
        entry.lottery_date,
        len(members) + len(submission.fills),
        entry.preferred_window,
        entry.alternate_window,
    )
    return SubmissionResult(success=True, entry=entry)


# ----------------------------------------------------------------------------
# Cancel / edit
# ----------------------------------------------------------------------------


def _get_entry(session: Session, entry_id: int) -> LotteryEntry:
    entry = session.get(LotteryEntry, entry_id)
    if entry is None:
        raise EntryNotFoundError(f"Lottery entry {entry_id} not found")
    return entry


def _delete_lottery_bookings(session: Session, entry_id: int) -> int:
    removed = 0
    for booking in session.exec(select(TimeBlockMember).where(TimeBlockMember.lottery_entry_id == entry_id)).all():
        session.delete(booking)
        removed += 1
    for fill in session.exec(select(TimeBlockFill).where(TimeBlockFill.lottery_entry_id == entry_id)).all():
        session.delete(fill)
        removed += 1
    return removed


def cancel_entry(session: Session, entry_id: int, is_group: Optional[bool] = None) -> LotteryEntry:
    """
    Mark an entry CANCELLED, releasing any seats it was assigned.

    is_group, when given, must match the entry's shape (EntryNotFoundError otherwise).
    """
    entry = _get_entry(session, entry_id)
    if is_group is not None and entry.is_group != is_group:
        kind = "group" if is_group else "individual"
        raise EntryNotFoundError(f"Lottery entry {entry_id} is not a {kind} entry")

    if entry.status == EntryStatus.CANCELLED.value:
        return entry

    released = _delete_lottery_bookings(session, entry.id) if entry.status == EntryStatus.ASSIGNED.value else 0
    entry.status = EntryStatus.CANCELLED.value
    entry.assigned_time_block_id = None
    entry.updated_at = datetime.utcnow()
    session.add(entry)
    session.commit()
    session.refresh(entry)

    logger.info("LOTTERY_ENTRY: cancelled entry_id=%s seats_released=%s", entry_id, released)
    return entry


def update_entry_preferences(
    session: Session,
    entry_id: int,
    preferred_window: str,
    alternate_window: Optional[str] = None,
    member_ids: Optional[List[int]] = None,
) -> SubmissionResult:
    """
    Admin edit of a PENDING entry's windows and (for groups) members.

    The organizer must remain in the member list. Raises EntryNotFoundError.
    """
    entry = _get_entry(session, entry_id)
    try:
        if entry.status != EntryStatus.PENDING.value:
            raise EntryValidationError(ENTRY_NOT_PENDING, f"Entry {entry_id} is {entry.status}, not PENDING")
        _validate_windows(preferred_window, alternate_window)

        members = list(entry.member_ids)
        if member_ids is not None:
            if entry.organizer_id not in member_ids:
                raise EntryValidationError(INVALID_GROUP_SIZE, "Organizer must remain in the entry")
            fill_count = len(entry.fills or [])
            members = _validate_shape(entry.organizer_id, member_ids, [FillSpec("FILL")] * fill_count)
            if (len(members) > 1) != entry.is_group:
                raise EntryValidationError(INVALID_GROUP_SIZE, "Edits cannot change an entry between individual and group")
            _validate_members_exist(session, entry.organizer_id, members)
        _check_conflicts(session, entry.lottery_date, entry.organizer_id, members, exclude_entry_id=entry.id)
    except EntryValidationError as e:
        logger.info("LOTTERY_ENTRY: edit rejected entry_id=%s code=%s", entry_id, e.error_code)
        return SubmissionResult.failed(e)

    entry.preferred_window = preferred_window
    entry.alternate_window = alternate_window
    entry.member_ids = members
    entry.updated_at = datetime.utcnow()
    session.add(entry)
    session.commit()
    session.refresh(entry)

    logger.info(
        "LOTTERY_ENTRY: edited entry_id=%s preferred=%s alternate=%s members=%s",
        entry_id,
        preferred_window,
        alternate_window,
        members,
    )
    return SubmissionResult(success=True, entry=entry)


# ----------------------------------------------------------------------------
# Bookings
# ----------------------------------------------------------------------------


def add_bookings(session: Session, request: LotteryRequest, block: TimeBlock, booking_date: date) -> int:
    """Stage one booking per member and one fill row per fill (no commit). Returns seats added."""
    for member_id in request.all_member_ids:
        session.add(
            TimeBlockMember(
                time_block_id=block.id,
                member_id=member_id,
                booking_date=booking_date,
                booking_time=block.start_time,
                lottery_entry_id=request.entry_id,
            )
        )
    for fill in request.fills:
        session.add(
            TimeBlockFill(
                time_block_id=block.id,
                fill_type=fill.fill_type,
                custom_name=fill.custom_name,
                lottery_entry_id=request.entry_id,
            )
        )
    return request.size


def assign_entry_manually(session: Session, entry_id: int, time_block_id: int) -> LotteryEntry:
    """
    Admin placement of a PENDING entry into a specific block.

    Raises EntryNotFoundError, or ManualAssignmentError when the entry is not
    pending, the block is not on the entry's date, seats are short, or a
    member is already booked in the block.
    """
    entry = _get_entry(session, entry_id)
    if entry.status != EntryStatus.PENDING.value:
        raise ManualAssignmentError(f"Entry {entry_id} is {entry.status}, not PENDING")

    block = session.get(TimeBlock, time_block_id)
    if block is None:
        raise ManualAssignmentError(f"Time block {time_block_id} not found")
    if block.teesheet is None or block.teesheet.date != entry.lottery_date:
        raise ManualAssignmentError(f"Time block {time_block_id} is not on {entry.lottery_date}")

    request = resolve_request(entry, entry.fills or [])
    occupied = block_occupancy(session, [block.id]).get(block.id, 0)
    remaining = block.max_members - occupied
    if remaining < request.size:
        raise ManualAssignmentError(
            f"Time block {time_block_id} has {remaining} open spots, entry needs {request.size}"
        )

    already = session.exec(
        select(TimeBlockMember.member_id).where(
            TimeBlockMember.time_block_id == block.id,
            TimeBlockMember.member_id.in_(list(request.all_member_ids)),
        )
    ).all()
    if already:
        raise ManualAssignmentError(f"Members already booked in time block {time_block_id}: {list(already)}")

    try:
        add_bookings(session, request, block, entry.lottery_date)
        entry.status = EntryStatus.ASSIGNED.value
        entry.assigned_time_block_id = block.id
        entry.processed_at = datetime.utcnow()
        entry.updated_at = entry.processed_at
        session.add(entry)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("LOTTERY_ENTRY: manual assignment failed entry_id=%s block_id=%s", entry_id, time_block_id)
        raise ManualAssignmentError(f"Could not assign entry {entry_id}: {e}") from e

    session.refresh(entry)
    logger.info("LOTTERY_ENTRY: manually assigned entry_id=%s block_id=%s", entry_id, time_block_id)
    return entry


def get_member_entry(session: Session, member_id: int, lottery_date: date) -> Optional[Dict[str, Any]]:
    """
    The member's entry for the date, if any:
    {"type": "individual" | "group" | "group_member", "entry": LotteryEntry}
    """
    for entry in get_active_entries_for_date(session, lottery_date):
        if not entry.is_group and entry.organizer_id == member_id:
            return {"type": "individual", "entry": entry}
        if entry.is_group and entry.organizer_id == member_id:
            return {"type": "group", "entry": entry}
        if entry.is_group and member_id in (entry.member_ids or []):
            return {"type": "group_member", "entry": entry}
    return None
