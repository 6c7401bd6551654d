from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session

from teelottery.database import get_session
from teelottery.services.algorithm_config import ConfigurationError, get_or_create_config, update_config

router = APIRouter()


class SpeedBonus(BaseModel):
    window: str
    fast_bonus: int = 0
    average_bonus: int = 0
    slow_bonus: int = 0


class AlgorithmConfigUpdate(BaseModel):
    fast_threshold_minutes: Optional[int] = None
    average_threshold_minutes: Optional[int] = None
    speed_bonuses: Optional[List[SpeedBonus]] = None
    process_groups_first: Optional[bool] = None
    prefer_best_fit: Optional[bool] = None
    updated_by: Optional[str] = None


class AlgorithmConfigResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    fast_threshold_minutes: int
    average_threshold_minutes: int
    speed_bonuses: List[SpeedBonus]
    process_groups_first: bool
    prefer_best_fit: bool
    updated_at: datetime
    updated_by: Optional[str]


@router.get("/lottery/algorithm-config", response_model=AlgorithmConfigResponse)
def get_algorithm_config(session: Session = Depends(get_session)):
    return get_or_create_config(session)


@router.put("/lottery/algorithm-config", response_model=AlgorithmConfigResponse)
def put_algorithm_config(body: AlgorithmConfigUpdate, session: Session = Depends(get_session)):
    try:
        return update_config(
            session,
            fast_threshold_minutes=body.fast_threshold_minutes,
            average_threshold_minutes=body.average_threshold_minutes,
            speed_bonuses=[b.model_dump() for b in body.speed_bonuses] if body.speed_bonuses is not None else None,
            process_groups_first=body.process_groups_first,
            prefer_best_fit=body.prefer_best_fit,
            updated_by=body.updated_by,
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
