from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel

MONTHLY_RESET = "MONTHLY_RESET"
MANUAL_MAINTENANCE = "MANUAL_MAINTENANCE"


class SystemMaintenance(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("maintenance_type", "month", name="uq_maintenance_type_month"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    maintenance_type: str = Field(index=True)  # MONTHLY_RESET | MANUAL_MAINTENANCE
    month: str = Field(max_length=7, index=True)
    completed_at: datetime = Field(default_factory=datetime.utcnow)
    records_affected: int = Field(default=0)
    notes: Optional[str] = Field(default=None, max_length=500)
