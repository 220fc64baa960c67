from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.permissions import get_schedule_manager
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.activity_schedule import (
    ActivityScheduleOut,
    ActivityScheduleUpdate,
    ActivityTypeEnum,
    CheckinCheckoutScheduleCreate,
    CoreScheduleCreate,
    OptionalScheduleCreate,
    RestingScheduleCreate,
    ScheduleBatchResult,
    ScheduleConflictCheck,
    ScheduleConflictResponse,
)
from app.schemas.camp import AvailableGroupOut
import app.controllers.activity_schedule as crud_schedule

router = APIRouter()


@router.post("/core", response_model=ScheduleBatchResult)
def create_core_schedules(
    payload: CoreScheduleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_schedule_manager),
):
    return crud_schedule.create_core_schedules(db, payload, current_user=current_user)


@router.post("/optional", response_model=ScheduleBatchResult)
def create_optional_schedules(
    payload: OptionalScheduleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_schedule_manager),
):
    return crud_schedule.create_optional_schedules(db, payload, current_user=current_user)


@router.post("/resting", response_model=ScheduleBatchResult)
def create_resting_schedules(
    payload: RestingScheduleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_schedule_manager),
):
    return crud_schedule.create_resting_schedules(db, payload, current_user=current_user)


@router.post("/checkin-checkout", response_model=ActivityScheduleOut, status_code=status.HTTP_201_CREATED)
def create_checkin_checkout_schedule(
    payload: CheckinCheckoutScheduleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_schedule_manager),
):
    return crud_schedule.create_checkin_checkout_schedule(db, payload, current_user=current_user)


@router.post("/validate", response_model=ScheduleConflictResponse)
def validate_schedule(
    payload: ScheduleConflictCheck,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_schedule_manager),
):
    """Dry-run the conflict rules for a proposed window"""
    return crud_schedule.check_schedule_conflicts(db, payload)


@router.put("/{schedule_id}", response_model=ActivityScheduleOut)
def reschedule(
    schedule_id: int,
    payload: ActivityScheduleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_schedule_manager),
):
    return crud_schedule.reschedule_schedule(db, schedule_id, payload, current_user=current_user)


@router.get("/camp/{camp_id}", response_model=List[ActivityScheduleOut])
def list_camp_schedules(
    camp_id: int,
    activity_type: Optional[ActivityTypeEnum] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return crud_schedule.list_camp_schedules(db, camp_id, activity_type)


@router.get("/camp/{camp_id}/staff/{staff_id}", response_model=List[ActivityScheduleOut])
def list_staff_schedules(
    camp_id: int,
    staff_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return crud_schedule.list_staff_schedules(db, camp_id, staff_id)


@router.get("/camp/{camp_id}/available-groups", response_model=List[AvailableGroupOut])
def get_available_groups(
    camp_id: int,
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_schedule_manager),
):
    return crud_schedule.get_available_groups_for_core(db, camp_id, start_time, end_time)


@router.get("/{schedule_id}", response_model=ActivityScheduleOut)
def get_schedule(
    schedule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return crud_schedule.get_schedule(db, schedule_id)
