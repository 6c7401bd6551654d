"""
Lottery read model: per-date stats, entry listings, remaining block capacity
and processing run history. Read-only.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import func
from sqlmodel import Session, select

from teelottery.models.lottery_entry import EntryStatus, LotteryEntry, LotteryEntryFill
from teelottery.models.lottery_processing_run import LotteryProcessingEntryLog, LotteryProcessingRun
from teelottery.models.member import Member
from teelottery.models.teesheet import Teesheet, TimeBlock, TimeBlockFill, TimeBlockMember
from teelottery.utils.time_format import format_hhmm, time_to_minutes


@dataclass
class AvailableBlock:
    block: TimeBlock
    start_minutes: int
    occupied: int
    remaining: int
    member_ids: Set[int] = field(default_factory=set)

    @property
    def id(self) -> int:
        return self.block.id

    def has_any_member(self, member_ids: Iterable[int]) -> bool:
        return any(mid in self.member_ids for mid in member_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.block.id,
            "start_time": format_hhmm(self.block.start_time),
            "end_time": format_hhmm(self.block.end_time),
            "display_name": self.block.display_name,
            "max_members": self.block.max_members,
            "occupied": self.occupied,
            "remaining": self.remaining,
        }


def get_teesheet_for_date(session: Session, lottery_date: date) -> Optional[Teesheet]:
    return session.exec(select(Teesheet).where(Teesheet.date == lottery_date)).first()


def block_occupancy(session: Session, block_ids: Iterable[int]) -> Dict[int, int]:
    """Seats taken per block: member bookings plus fills."""
    ids = list(set(block_ids))
    occupied: Dict[int, int] = defaultdict(int)
    if not ids:
        return occupied

    member_counts = session.exec(
        select(TimeBlockMember.time_block_id, func.count(TimeBlockMember.id))
        .where(TimeBlockMember.time_block_id.in_(ids))
        .group_by(TimeBlockMember.time_block_id)
    ).all()
    fill_counts = session.exec(
        select(TimeBlockFill.time_block_id, func.count(TimeBlockFill.id))
        .where(TimeBlockFill.time_block_id.in_(ids))
        .group_by(TimeBlockFill.time_block_id)
    ).all()
    for block_id, count in list(member_counts) + list(fill_counts):
        occupied[block_id] += int(count)
    return occupied


def block_members(session: Session, block_ids: Iterable[int]) -> Dict[int, Set[int]]:
    """Members already booked per block."""
    ids = list(set(block_ids))
    members: Dict[int, Set[int]] = defaultdict(set)
    if not ids:
        return members
    for block_id, member_id in session.exec(
        select(TimeBlockMember.time_block_id, TimeBlockMember.member_id).where(TimeBlockMember.time_block_id.in_(ids))
    ).all():
        members[block_id].add(member_id)
    return members


def get_time_blocks_for_date(session: Session, lottery_date: date) -> List[AvailableBlock]:
    """Every block of the date's teesheet with its occupancy, ordered by start time then id."""
    teesheet = get_teesheet_for_date(session, lottery_date)
    if teesheet is None:
        return []

    blocks = session.exec(
        select(TimeBlock)
        .where(TimeBlock.teesheet_id == teesheet.id)
        .order_by(TimeBlock.start_time, TimeBlock.id)
    ).all()
    block_ids = [b.id for b in blocks]
    occupied = block_occupancy(session, block_ids)
    booked = block_members(session, block_ids)

    return [
        AvailableBlock(
            block=b,
            start_minutes=time_to_minutes(b.start_time),
            occupied=occupied.get(b.id, 0),
            remaining=max(b.max_members - occupied.get(b.id, 0), 0),
            member_ids=set(booked.get(b.id, ())),
        )
        for b in blocks
    ]


def get_available_time_blocks_for_date(session: Session, lottery_date: date) -> List[AvailableBlock]:
    """Blocks with at least one open seat."""
    return [b for b in get_time_blocks_for_date(session, lottery_date) if b.remaining > 0]


def get_active_entries_for_date(session: Session, lottery_date: date) -> List[LotteryEntry]:
    return list(
        session.exec(
            select(LotteryEntry)
            .where(
                LotteryEntry.lottery_date == lottery_date,
                LotteryEntry.status != EntryStatus.CANCELLED.value,
            )
            .order_by(LotteryEntry.submission_timestamp, LotteryEntry.id)
        ).all()
    )


def _entry_view(entry: LotteryEntry, names: Dict[int, str], fills: List[LotteryEntryFill]) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "lottery_date": entry.lottery_date.isoformat(),
        "organizer_id": entry.organizer_id,
        "organizer_name": names.get(entry.organizer_id),
        "member_ids": list(entry.member_ids or []),
        "members": [{"id": mid, "name": names.get(mid)} for mid in entry.member_ids or []],
        "fills": [{"fill_type": f.fill_type, "custom_name": f.custom_name} for f in fills],
        "preferred_window": entry.preferred_window,
        "alternate_window": entry.alternate_window,
        "status": entry.status,
        "assigned_time_block_id": entry.assigned_time_block_id,
        "submission_timestamp": entry.submission_timestamp.isoformat() if entry.submission_timestamp else None,
        "processed_at": entry.processed_at.isoformat() if entry.processed_at else None,
    }


def get_lottery_data_for_date(session: Session, lottery_date: date) -> Dict[str, Any]:
    """Stats plus individual/group entry listings (cancelled entries excluded)."""
    entries = get_active_entries_for_date(session, lottery_date)

    member_ids = {mid for e in entries for mid in (e.member_ids or [])}
    names: Dict[int, str] = {}
    if member_ids:
        for m in session.exec(select(Member).where(Member.id.in_(list(member_ids)))).all():
            names[m.id] = m.full_name

    fills_by_entry: Dict[int, List[LotteryEntryFill]] = defaultdict(list)
    entry_ids = [e.id for e in entries]
    if entry_ids:
        for f in session.exec(
            select(LotteryEntryFill)
            .where(LotteryEntryFill.lottery_entry_id.in_(entry_ids))
            .order_by(LotteryEntryFill.id)
        ).all():
            fills_by_entry[f.lottery_entry_id].append(f)

    individual = [_entry_view(e, names, fills_by_entry[e.id]) for e in entries if not e.is_group]
    groups = [_entry_view(e, names, fills_by_entry[e.id]) for e in entries if e.is_group]

    blocks = get_time_blocks_for_date(session, lottery_date)

    stats = {
        "total_entries": len(entries),
        "individual_entries": len(individual),
        "group_entries": len(groups),
        "pending_entries": sum(1 for e in entries if e.status == EntryStatus.PENDING.value),
        "assigned_entries": sum(1 for e in entries if e.status == EntryStatus.ASSIGNED.value),
        "total_players": sum(len(e.member_ids or []) + len(fills_by_entry[e.id]) for e in entries),
        "available_blocks": sum(1 for b in blocks if b.remaining > 0),
        "available_spots": sum(b.remaining for b in blocks),
    }

    return {
        "date": lottery_date.isoformat(),
        "stats": stats,
        "entries": {"individual": individual, "groups": groups},
    }


def get_processing_runs(session: Session, lottery_date: date) -> List[Dict[str, Any]]:
    """Processing runs for a date, newest first, each with its per-entry logs."""
    runs = session.exec(
        select(LotteryProcessingRun)
        .where(LotteryProcessingRun.lottery_date == lottery_date)
        .order_by(LotteryProcessingRun.processed_at.desc(), LotteryProcessingRun.id.desc())
    ).all()
    if not runs:
        return []

    logs_by_run: Dict[int, List[LotteryProcessingEntryLog]] = defaultdict(list)
    for log in session.exec(
        select(LotteryProcessingEntryLog)
        .where(LotteryProcessingEntryLog.run_id.in_([r.id for r in runs]))
        .order_by(LotteryProcessingEntryLog.id)
    ).all():
        logs_by_run[log.run_id].append(log)

    out = []
    for run in runs:
        d = run.model_dump()
        d["lottery_date"] = run.lottery_date.isoformat()
        d["processed_at"] = run.processed_at.isoformat()
        d["entries"] = [
            {
                **log.model_dump(exclude={"processed_at"}),
                "processed_at": log.processed_at.isoformat(),
            }
            for log in logs_by_run[run.id]
        ]
        out.append(d)
    return out
