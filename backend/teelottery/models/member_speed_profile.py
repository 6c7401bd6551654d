from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


class SpeedTier(str, Enum):
    FAST = "FAST"
    AVERAGE = "AVERAGE"
    SLOW = "SLOW"


class MemberSpeedProfile(SQLModel, table=True):
    member_id: int = Field(foreign_key="member.id", primary_key=True)
    # Cumulative pace data; average_minutes = round(total_minutes / round_count)
    average_minutes: Optional[int] = Field(default=None)
    total_minutes: int = Field(default=0)
    round_count: int = Field(default=0)
    has_data: bool = Field(default=False)
    speed_tier: str = Field(default=SpeedTier.AVERAGE.value, index=True)
    manual_override: bool = Field(default=False)
    admin_priority_adjustment: int = Field(default=0)  # -20 to +20
    notes: Optional[str] = Field(default=None, max_length=500)
    last_calculated: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
