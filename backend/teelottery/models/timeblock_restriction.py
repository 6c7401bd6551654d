from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class RestrictionCategory(str, Enum):
    MEMBER_CLASS = "MEMBER_CLASS"
    COURSE_AVAILABILITY = "COURSE_AVAILABILITY"


class RestrictionType(str, Enum):
    TIME = "TIME"
    FREQUENCY = "FREQUENCY"
    AVAILABILITY = "AVAILABILITY"


class TimeblockRestriction(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=100)
    description: Optional[str] = Field(default=None)
    restriction_category: str = Field(index=True)
    restriction_type: str = Field(index=True)

    # Member classes the restriction applies to; empty means all classes
    member_classes: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    # TIME / AVAILABILITY
    start_time: Optional[str] = Field(default=None)  # "HH:MM"
    end_time: Optional[str] = Field(default=None)  # "HH:MM"
    days_of_week: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))  # 0=Sunday

    # Date range (required for AVAILABILITY, optional narrowing for TIME)
    start_date: Optional[date] = Field(default=None)
    end_date: Optional[date] = Field(default=None)

    # FREQUENCY
    max_count: Optional[int] = Field(default=None)
    period_days: Optional[int] = Field(default=None)
    apply_charge: bool = Field(default=False)
    charge_amount: Optional[str] = Field(default=None)

    is_active: bool = Field(default=True)
    can_override: bool = Field(default=True)
    priority: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class TimeblockOverride(SQLModel, table=True):
    """Admin exemption from one restriction, optionally scoped to a member and/or a time block."""

    id: Optional[int] = Field(default=None, primary_key=True)
    restriction_id: int = Field(foreign_key="timeblockrestriction.id", index=True)
    member_id: Optional[int] = Field(default=None, foreign_key="member.id")
    time_block_id: Optional[int] = Field(default=None, foreign_key="timeblock.id")
    overridden_by: str = Field(max_length=100)
    reason: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
