# app/api/v1/endpoints/schedules.py
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app import crud
from app.api import deps
from app.core.exceptions import NotFoundError
from app.schemas.schedule import (
    AudienceType,
    ScheduleCreate,
    ScheduleResponse,
    SpecialPeriodCreate,
    SpecialPeriodResponse,
)
from app.schemas.token import TokenPayload

router = APIRouter(tags=["Schedules"])


@router.get("/schedules", response_model=List[ScheduleResponse])
def list_schedules(
    audience_type: Optional[AudienceType] = None,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return crud.schedule.list_all(db, audience_type=audience_type.value if audience_type else None)


@router.post("/schedules", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
def create_schedule(
    schedule_in: ScheduleCreate,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    **[STAFF]** Add a weekly entry or a dated exception.

    **Errors**:
    - 409: The exception overlaps another exception for the same audience
    """
    return crud.schedule.create(db, obj_in=schedule_in)


@router.delete("/schedules/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_schedule(
    schedule_id: str,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    if crud.schedule.remove(db, id=schedule_id) is None:
        raise NotFoundError("Schedule not found")


@router.get("/special-periods", response_model=List[SpecialPeriodResponse])
def list_special_periods(
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return crud.special_period.get_multi(db, limit=500)


@router.post("/special-periods", response_model=SpecialPeriodResponse, status_code=status.HTTP_201_CREATED)
def create_special_period(
    period_in: SpecialPeriodCreate,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """**[STAFF]** Declare a holiday or closure period."""
    return crud.special_period.create(db, obj_in=period_in)


@router.delete("/special-periods/{period_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_special_period(
    period_id: str,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    if crud.special_period.remove(db, id=period_id) is None:
        raise NotFoundError("Special period not found")
