"""
Lottery Engine: once-per-date allocation of pending entries to time blocks

Pass outline:
1. Snapshot pending entries, blocks with open seats, restrictions/overrides,
   speed profiles, fairness rows (month of the lottery date) and the
   algorithm config. Nothing submitted after this point is seen.
2. No block with open seats (or no teesheet for the date) -> the pass fails
   ("No available time blocks for this date") and no entry is touched.
3. Rank requests with the priority comparator (services/priority.py).
4. For each request, in rank order:
   - candidate blocks: start in the preferred window, remaining >= size,
     none of the request's members already booked there, allowed by
     restrictions for every member of the request
   - none -> same scan over the alternate window
   - none -> entry stays PENDING (unplaced, not an error)
   - pick by nearest capacity fit, then earliest start, then block id
     (earliest start only when prefer_best_fit is off)
5. Each assignment is committed on its own (entry status + bookings). A
   storage failure rolls back that assignment only and the pass continues.
6. Seats consumed are subtracted from the in-memory snapshot immediately.
7. Fairness is counted once per entry, then the run + per-entry logs are written.

Guarantees:
- only PENDING entries are ever modified (safe to re-run)
- a group is placed whole into one block or not at all
- seats taken never exceed TimeBlock.max_members
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from teelottery.models.lottery_entry import EntryStatus, LotteryEntry, LotteryEntryFill
from teelottery.models.lottery_processing_run import LotteryProcessingEntryLog, LotteryProcessingRun
from teelottery.models.member_speed_profile import MemberSpeedProfile
from teelottery.models.teesheet import TeesheetConfig
from teelottery.services.algorithm_config import AlgorithmConfigSnapshot, get_config_snapshot
from teelottery.services.fairness import apply_outcome, ensure_month_rows, get_fairness_rows
from teelottery.services.lottery_data import AvailableBlock, get_available_time_blocks_for_date
from teelottery.services.lottery_entries import LotteryRequest, add_bookings, resolve_request
from teelottery.services.priority import EntryPriority, build_priority, priority_sort_key
from teelottery.services.restrictions import (
    ChargeSignal,
    FrequencyViolation,
    RestrictionContext,
    Violation,
    load_restriction_context,
    violation_to_dict,
)
from teelottery.services.time_windows import (
    TimeWindowInfo,
    block_in_window,
    calculate_time_windows,
    is_lottery_available,
)
from teelottery.utils.time_format import format_hhmm, month_key

logger = logging.getLogger(__name__)

NO_BLOCKS_MESSAGE = "No available time blocks for this date"
LOTTERY_UNAVAILABLE_MESSAGE = "Lottery is not available for this date"
NO_WINDOWS_MESSAGE = "Teesheet configuration has no valid time windows"
PROCESSING_FAILURE_MESSAGE = "Failed to process lottery entries"

# Per-entry assignment reasons
PREFERRED_MATCH = "PREFERRED_MATCH"
ALTERNATE_MATCH = "ALTERNATE_MATCH"
UNPLACED = "UNPLACED"
STORAGE_FAILURE = "STORAGE_FAILURE"

ChargeCallback = Callable[[ChargeSignal], None]


class LotteryEngineError(Exception):
    """Base exception for lottery processing errors"""

    pass


class CapacityError(LotteryEngineError):
    """No time block on the date has an open seat"""

    pass


class PlacementShortfall(LotteryEngineError):
    """A request fits no candidate block in either window (non-fatal)"""

    def __init__(self, entry_id: int, violations: Optional[List[Violation]] = None):
        super().__init__(f"Entry {entry_id} could not be placed")
        self.entry_id = entry_id
        self.violations = violations or []


@dataclass
class Placement:
    block: AvailableBlock
    window: str
    reason: str
    preference_granted: bool
    charges: List[FrequencyViolation] = field(default_factory=list)
    violations: List[Violation] = field(default_factory=list)


class ProcessingResult:
    """Structured result from one processing pass"""

    def __init__(self, lottery_date: date):
        self.lottery_date = lottery_date
        self.success = True
        self.error: Optional[str] = None
        self.total_entries = 0
        self.processed_count = 0
        self.unplaced_count = 0
        self.bookings_created = 0
        self.assignments: List[Dict[str, Any]] = []
        self.unplaced_entry_ids: List[int] = []
        self.failures: List[Dict[str, Any]] = []
        self.charges: List[ChargeSignal] = []
        self.run_id: Optional[int] = None
        self.duration_ms: Optional[int] = None

    @property
    def message(self) -> str:
        if not self.success:
            return self.error or "Lottery processing failed"
        if self.total_entries == 0:
            return "No pending entries to process"
        msg = (
            f"Processed {self.total_entries} entries: "
            f"{self.processed_count} assigned, {self.unplaced_count} unplaced"
        )
        if self.failures:
            msg += f", {len(self.failures)} failed"
        return msg

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "error": self.error,
            "lottery_date": self.lottery_date.isoformat(),
            "total_entries": self.total_entries,
            "processed_count": self.processed_count,
            "unplaced_count": self.unplaced_count,
            "bookings_created": self.bookings_created,
            "assignments": self.assignments,
            "unplaced_entry_ids": self.unplaced_entry_ids,
            "failures": self.failures,
            "charges": [c.to_dict() for c in self.charges],
            "run_id": self.run_id,
            "duration_ms": self.duration_ms,
            "message": self.message,
        }


# ----------------------------------------------------------------------------
# Candidate selection
# ----------------------------------------------------------------------------


def get_block_sort_key(block: AvailableBlock, size: int, prefer_best_fit: bool) -> Tuple:
    """
    Order: leftover seats after placement -> start time -> id.

    With prefer_best_fit off: start time -> id.
    """
    if prefer_best_fit:
        return (block.remaining - size, block.start_minutes, block.id)
    return (block.start_minutes, block.id)


def find_placement(
    request: LotteryRequest,
    blocks: List[AvailableBlock],
    windows: List[TimeWindowInfo],
    restrictions: RestrictionContext,
    config: AlgorithmConfigSnapshot,
) -> Placement:
    """
    Choose a block for request, preferred window first then alternate.

    Raises PlacementShortfall when neither window has an allowed block with
    enough open seats for the whole request.
    """
    seen: List[Violation] = []
    preferred_blocked_by_restrictions = False

    scan = [(request.preferred_window, PREFERRED_MATCH)]
    if request.alternate_window and request.alternate_window != request.preferred_window:
        scan.append((request.alternate_window, ALTERNATE_MATCH))

    for window, reason in scan:
        fitting = [
            b
            for b in blocks
            if b.remaining >= request.size
            and not b.has_any_member(request.all_member_ids)
            and block_in_window(windows, window, b.start_minutes)
        ]

        allowed = []
        for b in fitting:
            check = restrictions.check(request.all_member_ids, b.block)
            seen.extend(check.violations)
            if check.allowed:
                allowed.append((b, check))

        if not allowed:
            if fitting and reason == PREFERRED_MATCH:
                preferred_blocked_by_restrictions = True
            continue

        chosen, check = min(
            allowed, key=lambda bc: get_block_sort_key(bc[0], request.size, config.prefer_best_fit)
        )
        return Placement(
            block=chosen,
            window=window,
            reason=reason,
            # An alternate-window seat counts as denied, not granted, unless restrictions
            # removed every fitting preferred block
            preference_granted=reason == PREFERRED_MATCH or preferred_blocked_by_restrictions,
            charges=check.charges,
            violations=seen,
        )

    raise PlacementShortfall(request.entry_id, seen)


# ----------------------------------------------------------------------------
# Writes
# ----------------------------------------------------------------------------


def write_assignment(session: Session, request: LotteryRequest, block: AvailableBlock, lottery_date: date) -> bool:
    """
    Commit one assignment: entry -> ASSIGNED plus its bookings.

    Returns False (nothing written) if the entry is no longer PENDING.
    Raises SQLAlchemyError on storage failure; caller rolls back.
    """
    entry = session.get(LotteryEntry, request.entry_id)
    if entry is None:
        return False
    session.refresh(entry)
    if entry.status != EntryStatus.PENDING.value:
        return False

    add_bookings(session, request, block.block, lottery_date)
    now = datetime.utcnow()
    entry.status = EntryStatus.ASSIGNED.value
    entry.assigned_time_block_id = block.id
    entry.processed_at = now
    entry.updated_at = now
    session.add(entry)
    session.commit()
    return True


def _load_pending(session: Session, lottery_date: date) -> Tuple[List[LotteryEntry], Dict[int, List[LotteryEntryFill]]]:
    entries = session.exec(
        select(LotteryEntry)
        .where(
            LotteryEntry.lottery_date == lottery_date,
            LotteryEntry.status == EntryStatus.PENDING.value,
        )
        .order_by(LotteryEntry.submission_timestamp, LotteryEntry.id)
    ).all()

    fills: Dict[int, List[LotteryEntryFill]] = defaultdict(list)
    if entries:
        for f in session.exec(
            select(LotteryEntryFill)
            .where(LotteryEntryFill.lottery_entry_id.in_([e.id for e in entries]))
            .order_by(LotteryEntryFill.id)
        ).all():
            fills[f.lottery_entry_id].append(f)
    return list(entries), fills


def _validate_capacity(blocks: List[AvailableBlock]) -> None:
    if not blocks:
        raise CapacityError(NO_BLOCKS_MESSAGE)


def _snapshot_failed(session: Session, result: ProcessingResult, lottery_date: date) -> ProcessingResult:
    session.rollback()
    logger.exception("LOTTERY_PROCESS: date=%s failed to load pass snapshot", lottery_date)
    result.success = False
    result.error = PROCESSING_FAILURE_MESSAGE
    return result


# ----------------------------------------------------------------------------
# Main entry point
# ----------------------------------------------------------------------------


def process_lottery_for_date(
    session: Session,
    lottery_date: date,
    teesheet_config: Optional[TeesheetConfig],
    on_charge: Optional[ChargeCallback] = None,
) -> ProcessingResult:
    """
    Run one processing pass for lottery_date.

    on_charge, when given, is called once per ChargeSignal after the
    corresponding assignment has been committed.
    """
    start_time = datetime.utcnow()
    result = ProcessingResult(lottery_date)

    logger.info("LOTTERY_PROCESS: date=%s start", lottery_date)

    if teesheet_config is not None and not is_lottery_available(teesheet_config):
        result.success = False
        result.error = LOTTERY_UNAVAILABLE_MESSAGE
        logger.warning("LOTTERY_PROCESS: date=%s lottery unavailable for config", lottery_date)
        return result

    windows = calculate_time_windows(teesheet_config)
    if teesheet_config is not None and not windows:
        result.success = False
        result.error = NO_WINDOWS_MESSAGE
        logger.warning("LOTTERY_PROCESS: date=%s config_id=%s has no windows", lottery_date, teesheet_config.id)
        return result

    # 1. Snapshot
    try:
        entries, fills = _load_pending(session, lottery_date)
        # No configuration means no teesheet for the date
        blocks = get_available_time_blocks_for_date(session, lottery_date) if teesheet_config is not None else []
    except SQLAlchemyError:
        return _snapshot_failed(session, result, lottery_date)
    result.total_entries = len(entries)

    # 2. Capacity guard
    try:
        _validate_capacity(blocks)
    except CapacityError as e:
        result.success = False
        result.error = str(e)
        logger.warning("LOTTERY_PROCESS: date=%s pending=%s no available blocks", lottery_date, len(entries))
        return result

    if not entries:
        result.duration_ms = int((datetime.utcnow() - start_time).total_seconds() * 1000)
        logger.info("LOTTERY_PROCESS: date=%s no pending entries", lottery_date)
        return result

    month = month_key(lottery_date)
    requests = [resolve_request(e, fills.get(e.id, [])) for e in entries]

    priority_member_ids = [r.priority_member_id for r in requests]
    all_member_ids = {mid for r in requests for mid in r.all_member_ids}

    try:
        config = get_config_snapshot(session)
        ensure_month_rows(session, month, priority_member_ids)
        fairness_rows = get_fairness_rows(session, month, priority_member_ids)
        profiles = {
            p.member_id: p
            for p in session.exec(
                select(MemberSpeedProfile).where(MemberSpeedProfile.member_id.in_(priority_member_ids))
            ).all()
        }
        restrictions = load_restriction_context(session, lottery_date, all_member_ids)
    except SQLAlchemyError:
        return _snapshot_failed(session, result, lottery_date)

    # 3. Rank
    priorities: Dict[int, EntryPriority] = {}
    for r in requests:
        priorities[r.entry_id] = build_priority(
            entry_id=r.entry_id,
            is_group=r.is_group,
            preferred_window=r.preferred_window,
            submission_timestamp=r.submission_timestamp,
            fairness_row=fairness_rows.get(r.priority_member_id),
            speed_profile=profiles.get(r.priority_member_id),
            config=config,
        )
    ranked = sorted(requests, key=lambda r: priority_sort_key(priorities[r.entry_id]))

    logger.info(
        "LOTTERY_PROCESS: date=%s entries=%s blocks=%s open_seats=%s restrictions=%s",
        lottery_date,
        len(ranked),
        len(blocks),
        sum(b.remaining for b in blocks),
        len(restrictions.restrictions),
    )

    # 4-6. Place and write
    outcomes: List[Dict[str, Any]] = []
    for request in ranked:
        outcome: Dict[str, Any] = {"request": request, "placement": None, "reason": UNPLACED, "violations": []}
        try:
            placement = find_placement(request, blocks, windows, restrictions, config)
        except PlacementShortfall as shortfall:
            outcome["violations"] = shortfall.violations
            result.unplaced_count += 1
            result.unplaced_entry_ids.append(request.entry_id)
            outcomes.append(outcome)
            logger.info(
                "LOTTERY_PROCESS: unplaced entry_id=%s size=%s preferred=%s alternate=%s",
                request.entry_id,
                request.size,
                request.preferred_window,
                request.alternate_window,
            )
            continue

        outcome["violations"] = placement.violations
        try:
            written = write_assignment(session, request, placement.block, lottery_date)
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception(
                "LOTTERY_PROCESS: storage failure entry_id=%s block_id=%s", request.entry_id, placement.block.id
            )
            outcome["reason"] = STORAGE_FAILURE
            result.failures.append({"entry_id": request.entry_id, "time_block_id": placement.block.id, "error": str(e)})
            outcomes.append(outcome)
            continue

        if not written:
            logger.info("LOTTERY_PROCESS: entry_id=%s no longer pending, skipped", request.entry_id)
            continue

        # Reflect consumed seats for later requests in this pass
        placement.block.remaining -= request.size
        placement.block.occupied += request.size
        placement.block.member_ids.update(request.all_member_ids)
        restrictions.record_booking(request.all_member_ids)

        outcome["placement"] = placement
        outcome["reason"] = placement.reason
        outcomes.append(outcome)

        result.processed_count += 1
        result.bookings_created += request.size
        result.assignments.append(
            {
                "entry_id": request.entry_id,
                "time_block_id": placement.block.id,
                "start_time": format_hhmm(placement.block.block.start_time),
                "window": placement.window,
                "reason": placement.reason,
                "member_ids": list(request.all_member_ids),
                "fills": len(request.fills),
            }
        )

        for v in placement.charges:
            signal = ChargeSignal(
                member_id=v.member_id,
                restriction_id=v.restriction_id,
                amount=v.charge_amount,
                lottery_date=lottery_date,
                entry_id=request.entry_id,
            )
            result.charges.append(signal)
            if on_charge is not None:
                try:
                    on_charge(signal)
                except Exception:
                    logger.exception(
                        "LOTTERY_PROCESS: charge callback failed entry_id=%s restriction_id=%s",
                        request.entry_id,
                        v.restriction_id,
                    )

    # 7. Fairness + audit
    run = _record_outcomes(session, lottery_date, month, outcomes, priorities, fairness_rows, result, start_time)
    result.run_id = run.id if run else None

    logger.info(
        "LOTTERY_PROCESS: date=%s done assigned=%s unplaced=%s failed=%s charges=%s duration_ms=%s",
        lottery_date,
        result.processed_count,
        result.unplaced_count,
        len(result.failures),
        len(result.charges),
        result.duration_ms,
    )
    return result


def _record_outcomes(
    session: Session,
    lottery_date: date,
    month: str,
    outcomes: List[Dict[str, Any]],
    priorities: Dict[int, EntryPriority],
    fairness_rows: Dict,
    result: ProcessingResult,
    start_time: datetime,
) -> Optional[LotteryProcessingRun]:
    """Count fairness once per entry and write the run log, in one transaction."""
    now = datetime.utcnow()
    logs: List[LotteryProcessingEntryLog] = []
    group_count = 0
    violation_count = 0

    for outcome in outcomes:
        request: LotteryRequest = outcome["request"]
        placement: Optional[Placement] = outcome["placement"]
        reason = outcome["reason"]
        violations = outcome["violations"]

        if request.is_group:
            group_count += 1
        if violations:
            violation_count += 1

        row = fairness_rows.get(request.priority_member_id)
        before = row.fairness_score if row is not None else None
        granted: Optional[bool] = None

        if reason != STORAGE_FAILURE:
            granted = placement.preference_granted if placement is not None else False
            entry = session.get(LotteryEntry, request.entry_id)
            if entry is not None and not entry.fairness_recorded:
                if row is not None:
                    apply_outcome(row, granted)
                    session.add(row)
                entry.fairness_recorded = True
                session.add(entry)

        logs.append(
            LotteryProcessingEntryLog(
                run_id=0,
                entry_id=request.entry_id,
                entry_type="GROUP" if request.is_group else "INDIVIDUAL",
                preferred_window=request.preferred_window,
                alternate_window=request.alternate_window,
                assigned_time_block_id=placement.block.id if placement else None,
                assigned_start_time=format_hhmm(placement.block.block.start_time) if placement else None,
                assignment_reason=reason,
                violated_restrictions=bool(violations),
                restriction_details={"violations": [violation_to_dict(v) for v in violations]} if violations else None,
                priority_score=priorities[request.entry_id].composite,
                fairness_score_before=before,
                fairness_score_after=row.fairness_score if row is not None else None,
                preference_granted=granted,
                processed_at=now,
            )
        )

    result.duration_ms = int((datetime.utcnow() - start_time).total_seconds() * 1000)

    run = LotteryProcessingRun(
        lottery_date=lottery_date,
        processed_at=now,
        total_entries=result.total_entries,
        assigned_count=result.processed_count,
        unplaced_count=result.unplaced_count,
        group_count=group_count,
        individual_count=len(outcomes) - group_count,
        violation_count=violation_count,
        charge_count=len(result.charges),
        failed_count=len(result.failures),
        duration_ms=result.duration_ms,
        notes=result.message,
    )
    try:
        session.add(run)
        session.flush()
        for log in logs:
            log.run_id = run.id
            session.add(log)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("LOTTERY_PROCESS: date=%s failed to record fairness/run log", lottery_date)
        result.failures.append({"entry_id": None, "time_block_id": None, "error": f"run log not recorded: {e}"})
        return None

    session.refresh(run)
    logger.info("LOTTERY_PROCESS: date=%s month=%s run_id=%s recorded", lottery_date, month, run.id)
    return run
