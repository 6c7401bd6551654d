from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlmodel import Session

from teelottery.database import get_session
from teelottery.services.lottery_data import (
    get_lottery_data_for_date,
    get_processing_runs,
    get_teesheet_for_date,
)
from teelottery.services.lottery_engine import process_lottery_for_date
from teelottery.services.lottery_entries import (
    EntryNotFoundError,
    EntrySubmission,
    FillSpec,
    ManualAssignmentError,
    assign_entry_manually,
    cancel_entry,
    get_member_entry,
    submit_entry,
    update_entry_preferences,
)
from teelottery.services.time_windows import VALID_WINDOWS, calculate_time_windows, is_lottery_available

router = APIRouter()


class FillIn(BaseModel):
    fill_type: str
    custom_name: Optional[str] = None

    @field_validator("fill_type")
    @classmethod
    def validate_fill_type(cls, v):
        if not v or not v.strip():
            raise ValueError("fill_type is required")
        return v.strip()


class EntryCreate(BaseModel):
    organizer_id: int
    lottery_date: date
    preferred_window: str
    alternate_window: Optional[str] = None
    member_ids: List[int] = Field(default_factory=list)
    fills: List[FillIn] = Field(default_factory=list)


class EntryUpdate(BaseModel):
    preferred_window: str
    alternate_window: Optional[str] = None
    member_ids: Optional[List[int]] = None

    @model_validator(mode="after")
    def validate_windows(self):
        if self.preferred_window not in VALID_WINDOWS:
            raise ValueError(f"preferred_window must be one of {sorted(VALID_WINDOWS)}")
        if self.alternate_window is not None and self.alternate_window not in VALID_WINDOWS:
            raise ValueError(f"alternate_window must be one of {sorted(VALID_WINDOWS)}")
        return self


class ManualAssignRequest(BaseModel):
    time_block_id: int


class EntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    lottery_date: date
    member_ids: List[int]
    organizer_id: int
    preferred_window: str
    alternate_window: Optional[str]
    status: str
    assigned_time_block_id: Optional[int]
    submission_timestamp: datetime
    processed_at: Optional[datetime]


class MemberEntryResponse(BaseModel):
    type: str
    entry: EntryResponse


def _submission_error(result) -> HTTPException:
    return HTTPException(status_code=400, detail={"error_code": result.error_code, "error": result.error})


# ============================================================================
# Entries
# ============================================================================


@router.post("/lottery/entries", response_model=EntryResponse, status_code=201)
def create_entry(body: EntryCreate, session: Session = Depends(get_session)):
    submission = EntrySubmission(
        lottery_date=body.lottery_date,
        preferred_window=body.preferred_window,
        alternate_window=body.alternate_window,
        member_ids=list(body.member_ids),
        fills=[FillSpec(f.fill_type, f.custom_name) for f in body.fills],
    )
    result = submit_entry(session, body.organizer_id, submission)
    if not result.success:
        raise _submission_error(result)
    return result.entry


@router.post("/lottery/entries/{entry_id}/cancel", response_model=EntryResponse)
def cancel_lottery_entry(entry_id: int, is_group: Optional[bool] = None, session: Session = Depends(get_session)):
    try:
        return cancel_entry(session, entry_id, is_group=is_group)
    except EntryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/lottery/entries/{entry_id}", response_model=EntryResponse)
def update_lottery_entry(entry_id: int, body: EntryUpdate, session: Session = Depends(get_session)):
    try:
        result = update_entry_preferences(
            session,
            entry_id,
            preferred_window=body.preferred_window,
            alternate_window=body.alternate_window,
            member_ids=body.member_ids,
        )
    except EntryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if not result.success:
        raise _submission_error(result)
    return result.entry


@router.post("/lottery/entries/{entry_id}/assign", response_model=EntryResponse)
def assign_lottery_entry(entry_id: int, body: ManualAssignRequest, session: Session = Depends(get_session)):
    try:
        return assign_entry_manually(session, entry_id, body.time_block_id)
    except EntryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ManualAssignmentError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/lottery/members/{member_id}/entry", response_model=Optional[MemberEntryResponse])
def get_lottery_member_entry(
    member_id: int,
    on_date: date = Query(..., alias="date"),
    session: Session = Depends(get_session),
):
    found = get_member_entry(session, member_id, on_date)
    if found is None:
        return None
    return MemberEntryResponse(type=found["type"], entry=EntryResponse.model_validate(found["entry"]))


# ============================================================================
# Per-date
# ============================================================================


@router.post("/lottery/{lottery_date}/process")
def process_lottery(lottery_date: date, session: Session = Depends(get_session)) -> Dict[str, Any]:
    """Run the lottery for a date using the date's teesheet configuration."""
    teesheet = get_teesheet_for_date(session, lottery_date)
    if teesheet is not None and not teesheet.lottery_enabled:
        raise HTTPException(status_code=400, detail=f"Lottery is disabled for {lottery_date}")

    # A date without a teesheet has no blocks; the engine reports that as a failed pass
    result = process_lottery_for_date(session, lottery_date, teesheet.config if teesheet else None)
    return result.to_dict()


@router.get("/lottery/{lottery_date}")
def get_lottery(lottery_date: date, session: Session = Depends(get_session)) -> Dict[str, Any]:
    return get_lottery_data_for_date(session, lottery_date)


@router.get("/lottery/{lottery_date}/time-windows")
def get_lottery_time_windows(lottery_date: date, session: Session = Depends(get_session)) -> Dict[str, Any]:
    teesheet = get_teesheet_for_date(session, lottery_date)
    config = teesheet.config if teesheet else None
    return {
        "date": lottery_date.isoformat(),
        "lottery_available": bool(teesheet and teesheet.lottery_enabled and is_lottery_available(config)),
        "windows": [w.to_dict() for w in calculate_time_windows(config)],
    }


@router.get("/lottery/{lottery_date}/runs")
def get_lottery_runs(lottery_date: date, session: Session = Depends(get_session)) -> List[Dict[str, Any]]:
    return get_processing_runs(session, lottery_date)
