from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from teelottery.database import get_session
from teelottery.services.maintenance import (
    check_and_run_monthly_maintenance,
    current_month,
    trigger_manual_maintenance,
)

router = APIRouter()


@router.post("/lottery/maintenance/monthly")
def run_monthly_maintenance(month: Optional[str] = None, session: Session = Depends(get_session)) -> Dict[str, Any]:
    """Idempotent monthly fairness reset. month defaults to the current UTC month."""
    try:
        return check_and_run_monthly_maintenance(session, month or current_month()).to_dict()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/lottery/maintenance/manual")
def run_manual_maintenance(month: Optional[str] = None, session: Session = Depends(get_session)) -> Dict[str, Any]:
    try:
        return trigger_manual_maintenance(session, month or current_month()).to_dict()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
