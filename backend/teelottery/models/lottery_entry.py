from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel


class EntryStatus(str, Enum):
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    CANCELLED = "CANCELLED"


class LotteryEntry(SQLModel, table=True):
    """
    Consolidated lottery entry (individual + group).

    Shape is derived from member_ids: one id is an individual entry, two to
    four ids is a group. organizer_id is always the creator and is always
    contained in member_ids.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    lottery_date: date = Field(index=True)
    member_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    organizer_id: int = Field(foreign_key="member.id", index=True)
    preferred_window: str  # MORNING | MIDDAY | AFTERNOON | EVENING
    alternate_window: Optional[str] = Field(default=None)
    status: str = Field(default=EntryStatus.PENDING.value, index=True)
    assigned_time_block_id: Optional[int] = Field(default=None, foreign_key="timeblock.id")
    submission_timestamp: datetime = Field(default_factory=datetime.utcnow)
    processed_at: Optional[datetime] = Field(default=None)
    # Set once the entry's outcome has been counted toward the organizer's fairness row
    fairness_recorded: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    fills: List["LotteryEntryFill"] = Relationship(back_populates="entry")

    @property
    def is_group(self) -> bool:
        return len(self.member_ids or []) > 1


class LotteryEntryFill(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    lottery_entry_id: int = Field(foreign_key="lotteryentry.id", index=True)
    fill_type: str
    custom_name: Optional[str] = Field(default=None)

    entry: LotteryEntry = Relationship(back_populates="fills")
