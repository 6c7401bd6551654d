from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel

DEFAULT_FAST_THRESHOLD_MINUTES = 235  # 3:55
DEFAULT_AVERAGE_THRESHOLD_MINUTES = 245  # 4:05

# Priority points added per preferred window and speed tier
DEFAULT_SPEED_BONUSES: List[Dict[str, Any]] = [
    {"window": "MORNING", "fast_bonus": 5, "average_bonus": 2, "slow_bonus": 0},
    {"window": "MIDDAY", "fast_bonus": 2, "average_bonus": 1, "slow_bonus": 0},
    {"window": "AFTERNOON", "fast_bonus": 0, "average_bonus": 0, "slow_bonus": 0},
    {"window": "EVENING", "fast_bonus": 0, "average_bonus": 0, "slow_bonus": 0},
]

SINGLETON_ID = 1


def default_speed_bonuses() -> List[Dict[str, Any]]:
    return [dict(b) for b in DEFAULT_SPEED_BONUSES]


class LotteryAlgorithmConfig(SQLModel, table=True):
    """Singleton (id=1) holding the tunable knobs of the lottery algorithm."""

    id: int = Field(default=SINGLETON_ID, primary_key=True)
    fast_threshold_minutes: int = Field(default=DEFAULT_FAST_THRESHOLD_MINUTES)
    average_threshold_minutes: int = Field(default=DEFAULT_AVERAGE_THRESHOLD_MINUTES)
    speed_bonuses: List[Dict[str, Any]] = Field(
        default_factory=default_speed_bonuses, sa_column=Column(JSON, nullable=False)
    )
    process_groups_first: bool = Field(default=True)
    prefer_best_fit: bool = Field(default=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
    updated_by: Optional[str] = Field(default=None, max_length=100)
