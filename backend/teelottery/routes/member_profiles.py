from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session

from teelottery.database import get_session
from teelottery.models.member import Member
from teelottery.models.member_speed_profile import SpeedTier
from teelottery.services.speed_profiles import (
    MAX_ADMIN_ADJUSTMENT,
    MIN_ADMIN_ADJUSTMENT,
    SpeedProfileUpdate,
    list_member_profiles,
    reclassify_all_speed_tiers,
    record_completed_round,
    reset_all_admin_priority_adjustments,
    update_member_speed_profile,
)

router = APIRouter()


class SpeedProfilePatch(BaseModel):
    speed_tier: Optional[str] = None
    admin_priority_adjustment: Optional[int] = None
    manual_override: Optional[bool] = None
    notes: Optional[str] = None

    @field_validator("speed_tier")
    @classmethod
    def validate_speed_tier(cls, v):
        if v is not None and v not in {t.value for t in SpeedTier}:
            raise ValueError(f"speed_tier must be one of {[t.value for t in SpeedTier]}")
        return v

    @field_validator("admin_priority_adjustment")
    @classmethod
    def validate_adjustment(cls, v):
        if v is not None and not (MIN_ADMIN_ADJUSTMENT <= v <= MAX_ADMIN_ADJUSTMENT):
            raise ValueError(f"admin_priority_adjustment must be between {MIN_ADMIN_ADJUSTMENT} and {MAX_ADMIN_ADJUSTMENT}")
        return v

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v):
        if v is not None and len(v) > 500:
            raise ValueError("notes must be at most 500 characters")
        return v


class RoundIn(BaseModel):
    round_minutes: int
    # Playing partners recorded with the same round time
    partner_ids: List[int] = []


class SpeedProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    member_id: int
    average_minutes: Optional[int]
    round_count: int
    has_data: bool
    speed_tier: str
    manual_override: bool
    admin_priority_adjustment: int
    notes: Optional[str]
    last_calculated: datetime


@router.get("/lottery/member-profiles")
def get_member_profiles(session: Session = Depends(get_session)) -> List[Dict[str, Any]]:
    return list_member_profiles(session)


@router.put("/lottery/member-profiles/{member_id}", response_model=SpeedProfileResponse)
def put_member_profile(member_id: int, body: SpeedProfilePatch, session: Session = Depends(get_session)):
    if session.get(Member, member_id) is None:
        raise HTTPException(status_code=404, detail="Member not found")
    try:
        return update_member_speed_profile(session, member_id, SpeedProfileUpdate(**body.model_dump()))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/lottery/member-profiles/reclassify")
def reclassify_member_profiles(session: Session = Depends(get_session)) -> Dict[str, Any]:
    return reclassify_all_speed_tiers(session).to_dict()


@router.post("/lottery/member-profiles/reset-adjustments")
def reset_member_adjustments(session: Session = Depends(get_session)) -> Dict[str, Any]:
    return {"reset_count": reset_all_admin_priority_adjustments(session)}


@router.post("/lottery/member-profiles/{member_id}/rounds")
def post_member_round(member_id: int, body: RoundIn, session: Session = Depends(get_session)) -> Dict[str, Any]:
    """Record a completed round for a member (and optionally their playing partners)."""
    member_ids = [member_id] + [m for m in body.partner_ids if m != member_id]
    for mid in member_ids:
        if session.get(Member, mid) is None:
            raise HTTPException(status_code=404, detail=f"Member {mid} not found")

    updated = record_completed_round(session, member_ids, body.round_minutes)
    return {
        "recorded": bool(updated),
        "profiles": [SpeedProfileResponse.model_validate(p).model_dump(mode="json") for p in updated],
    }
