from datetime import datetime

from sqlmodel import Field, SQLModel


class MemberFairnessScore(SQLModel, table=True):
    """Monthly fairness accounting. One row per member per month, never carried over."""

    member_id: int = Field(foreign_key="member.id", primary_key=True)
    current_month: str = Field(primary_key=True, max_length=7)  # "2025-11"
    total_entries_month: int = Field(default=0)
    preferences_granted_month: int = Field(default=0)
    preference_fulfillment_rate: float = Field(default=0.0)  # 0.0 - 1.0
    days_without_good_time: int = Field(default=0)
    fairness_score: int = Field(default=0, index=True)
    last_updated: datetime = Field(default_factory=datetime.utcnow)
