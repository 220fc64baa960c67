from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from app.schemas.activity_schedule import ScheduleStatusEnum


class ParticipantStatusEnum(str, Enum):
    present = "Present"
    absent = "Absent"
    late = "Late"
    excused = "Excused"
    not_yet = "NotYet"


class CheckInMethodEnum(str, Enum):
    manual = "Manual"
    face_recognition = "FaceRecognition"
    system_generated = "SystemGenerated"


class AttendanceCheckRequest(BaseModel):
    activity_schedule_id: int
    camper_ids: List[int] = Field(default_factory=list)
    participant_status: ParticipantStatusEnum = ParticipantStatusEnum.present
    note: Optional[str] = None


class AttendanceCheckResult(BaseModel):
    activity_schedule_id: int
    status: ScheduleStatusEnum
    total: int
    success_count: int
    fail_count: int
    created_count: int = 0
    updated_count: int = 0
    failed_camper_ids: List[int] = Field(default_factory=list)


class AttendanceLogOut(BaseModel):
    id: int
    camper_id: int
    activity_schedule_id: int
    staff_id: Optional[int] = None
    participant_status: ParticipantStatusEnum
    check_in_method: CheckInMethodEnum
    note: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class AttendanceLogCorrection(BaseModel):
    attendance_log_id: int
    participant_status: ParticipantStatusEnum
    note: Optional[str] = None


class AttendanceLogUpdate(BaseModel):
    corrections: List[AttendanceLogCorrection]
