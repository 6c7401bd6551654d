from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlmodel import Session

from teelottery.database import get_session
from teelottery.models.timeblock_restriction import RestrictionCategory, RestrictionType, TimeblockRestriction
from teelottery.services.restrictions import create_override, create_restriction, list_restrictions

router = APIRouter()


class RestrictionCreate(BaseModel):
    name: str
    description: Optional[str] = None
    restriction_category: RestrictionCategory
    restriction_type: RestrictionType
    member_classes: List[str] = Field(default_factory=list)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    days_of_week: List[int] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    max_count: Optional[int] = None
    period_days: Optional[int] = None
    apply_charge: bool = False
    charge_amount: Optional[str] = None
    is_active: bool = True
    can_override: bool = True
    priority: int = 0

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        return self


class RestrictionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    restriction_category: str
    restriction_type: str
    member_classes: List[str]
    start_time: Optional[str]
    end_time: Optional[str]
    days_of_week: List[int]
    start_date: Optional[date]
    end_date: Optional[date]
    max_count: Optional[int]
    period_days: Optional[int]
    apply_charge: bool
    charge_amount: Optional[str]
    is_active: bool
    can_override: bool
    priority: int


class OverrideCreate(BaseModel):
    overridden_by: str
    member_id: Optional[int] = None
    time_block_id: Optional[int] = None
    reason: Optional[str] = None


class OverrideResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    restriction_id: int
    member_id: Optional[int]
    time_block_id: Optional[int]
    overridden_by: str
    reason: Optional[str]
    created_at: datetime


@router.get("/restrictions", response_model=List[RestrictionResponse])
def get_restrictions(active_only: bool = False, session: Session = Depends(get_session)):
    return list_restrictions(session, active_only=active_only)


@router.post("/restrictions", response_model=RestrictionResponse, status_code=201)
def post_restriction(body: RestrictionCreate, session: Session = Depends(get_session)):
    data = body.model_dump()
    data["restriction_category"] = body.restriction_category.value
    data["restriction_type"] = body.restriction_type.value
    try:
        return create_restriction(session, TimeblockRestriction(**data))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/restrictions/{restriction_id}/overrides", response_model=OverrideResponse, status_code=201)
def post_override(restriction_id: int, body: OverrideCreate, session: Session = Depends(get_session)):
    try:
        return create_override(
            session,
            restriction_id,
            overridden_by=body.overridden_by,
            member_id=body.member_id,
            time_block_id=body.time_block_id,
            reason=body.reason,
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
