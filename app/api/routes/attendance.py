from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.permissions import get_staff_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.attendance import (
    AttendanceCheckRequest,
    AttendanceCheckResult,
    AttendanceLogOut,
    AttendanceLogUpdate,
)
import app.controllers.attendance as crud_attendance

router = APIRouter()


@router.post("/core-activity", response_model=AttendanceCheckResult)
def check_core_activity(
    request: AttendanceCheckRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    return crud_attendance.check_core_activity_attendance(db, request, current_user=current_user)


@router.post("/optional-activity", response_model=AttendanceCheckResult)
def check_optional_activity(
    request: AttendanceCheckRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    return crud_attendance.check_optional_activity_attendance(db, request, current_user=current_user)


@router.post("/checkin", response_model=AttendanceCheckResult)
def check_in(
    request: AttendanceCheckRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    return crud_attendance.check_in_attendance(db, request, current_user=current_user)


@router.post("/checkout", response_model=AttendanceCheckResult)
def check_out(
    request: AttendanceCheckRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    return crud_attendance.check_out_attendance(db, request, current_user=current_user)


@router.put("", response_model=List[AttendanceLogOut])
def correct_attendance_logs(
    payload: AttendanceLogUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    return crud_attendance.update_attendance_logs(db, payload.corrections, current_user=current_user)


@router.get("/schedule/{schedule_id}", response_model=List[AttendanceLogOut])
def list_schedule_attendance(
    schedule_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_staff_user),
):
    return crud_attendance.list_schedule_attendance(db, schedule_id)
