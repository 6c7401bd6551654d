from typing import Optional

from sqlmodel import Field, SQLModel


class Member(SQLModel, table=True):
    """Minimal member directory row read by the lottery (class drives restrictions)."""

    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    member_number: Optional[str] = Field(default=None, index=True)
    member_class: str = Field(default="REGULAR")  # e.g. "REGULAR", "INTERMEDIATE", "JUNIOR"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
