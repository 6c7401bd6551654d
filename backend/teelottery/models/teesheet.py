from datetime import date, datetime, time
from enum import Enum
from typing import List, Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel


class ConfigType(str, Enum):
    REGULAR = "REGULAR"
    CUSTOM = "CUSTOM"


class TeesheetConfig(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    config_type: ConfigType = Field(default=ConfigType.REGULAR, sa_column=Column(String, nullable=False))
    start_time: Optional[str] = Field(default=None)  # "HH:MM"; unused for CUSTOM configs
    end_time: Optional[str] = Field(default=None)  # "HH:MM"
    interval_minutes: int = Field(default=10)
    max_members_per_block: int = Field(default=4)


class Teesheet(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("date", name="uq_teesheet_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    date: date
    config_id: Optional[int] = Field(default=None, foreign_key="teesheetconfig.id")
    lottery_enabled: bool = Field(default=True)

    # Relationships
    config: Optional[TeesheetConfig] = Relationship()
    time_blocks: List["TimeBlock"] = Relationship(back_populates="teesheet")


class TimeBlock(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    teesheet_id: int = Field(foreign_key="teesheet.id", index=True)
    start_time: time
    end_time: time
    max_members: int = Field(default=4)
    display_name: Optional[str] = Field(default=None)
    sort_order: int = Field(default=0)

    # Relationships
    teesheet: Teesheet = Relationship(back_populates="time_blocks")
    members: List["TimeBlockMember"] = Relationship(back_populates="time_block")
    fills: List["TimeBlockFill"] = Relationship(back_populates="time_block")


class TimeBlockMember(SQLModel, table=True):
    """A booking: one member occupying one seat of a time block."""

    __table_args__ = (SAUniqueConstraint("time_block_id", "member_id", name="uq_time_block_member"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    time_block_id: int = Field(foreign_key="timeblock.id", index=True)
    member_id: int = Field(foreign_key="member.id", index=True)
    booking_date: date = Field(index=True)
    booking_time: time
    lottery_entry_id: Optional[int] = Field(default=None, foreign_key="lotteryentry.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    time_block: TimeBlock = Relationship(back_populates="members")


class TimeBlockFill(SQLModel, table=True):
    """An anonymous placeholder seat (e.g. unnamed guest) on a time block."""

    id: Optional[int] = Field(default=None, primary_key=True)
    time_block_id: int = Field(foreign_key="timeblock.id", index=True)
    fill_type: str  # "GUEST" | "RECIPROCAL" | "CUSTOM" ...
    custom_name: Optional[str] = Field(default=None)
    lottery_entry_id: Optional[int] = Field(default=None, foreign_key="lotteryentry.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    time_block: TimeBlock = Relationship(back_populates="fills")
