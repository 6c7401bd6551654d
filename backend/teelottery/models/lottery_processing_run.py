from datetime import date, datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel, Text


class LotteryProcessingRun(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    lottery_date: date = Field(index=True)
    processed_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    total_entries: int = Field(default=0)
    assigned_count: int = Field(default=0)
    unplaced_count: int = Field(default=0)
    group_count: int = Field(default=0)
    individual_count: int = Field(default=0)
    violation_count: int = Field(default=0)
    charge_count: int = Field(default=0)
    failed_count: int = Field(default=0)
    duration_ms: int = Field(default=0)
    notes: Optional[str] = Field(default=None, sa_column=Column(Text))


class LotteryProcessingEntryLog(SQLModel, table=True):
    """Per-entry decision record for one processing run."""

    id: Optional[int] = Field(default=None, primary_key=True)
    run_id: int = Field(foreign_key="lotteryprocessingrun.id", index=True)
    entry_id: int = Field(foreign_key="lotteryentry.id", index=True)
    entry_type: str  # INDIVIDUAL | GROUP
    preferred_window: Optional[str] = Field(default=None)
    alternate_window: Optional[str] = Field(default=None)
    assigned_time_block_id: Optional[int] = Field(default=None, foreign_key="timeblock.id")
    assigned_start_time: Optional[str] = Field(default=None)
    # PREFERRED_MATCH | ALTERNATE_MATCH | UNPLACED | STORAGE_FAILURE
    assignment_reason: str
    violated_restrictions: bool = Field(default=False)
    restriction_details: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    priority_score: int = Field(default=0)
    fairness_score_before: Optional[int] = Field(default=None)
    fairness_score_after: Optional[int] = Field(default=None)
    preference_granted: Optional[bool] = Field(default=None)
    processed_at: datetime = Field(default_factory=datetime.utcnow)
