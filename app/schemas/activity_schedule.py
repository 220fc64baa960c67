from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ActivityTypeEnum(str, Enum):
    core = "Core"
    optional = "Optional"
    checkin = "Checkin"
    checkout = "Checkout"
    resting = "Resting"


class ScheduleStatusEnum(str, Enum):
    scheduled = "Scheduled"
    attendance_checked = "AttendanceChecked"


class ScheduleWindow(BaseModel):
    start_time: datetime
    end_time: datetime


class CoreScheduleCreate(ScheduleWindow):
    activity_id: int
    location_id: Optional[int] = None
    staff_id: Optional[int] = None
    is_live_stream: bool = False
    is_repeat: bool = False
    group_ids: List[int] = Field(default_factory=list)


class OptionalScheduleCreate(ScheduleWindow):
    activity_id: int
    location_id: Optional[int] = None
    staff_id: Optional[int] = None
    is_live_stream: bool = False
    is_repeat: bool = False


class RestingScheduleCreate(ScheduleWindow):
    activity_id: int
    is_repeat: bool = False


class CheckinCheckoutScheduleCreate(ScheduleWindow):
    activity_id: int
    location_id: Optional[int] = None


class ActivityScheduleUpdate(ScheduleWindow):
    location_id: Optional[int] = None
    staff_id: Optional[int] = None
    is_live_stream: bool = False


class ScheduleConflictCheck(ScheduleWindow):
    activity_id: int
    location_id: Optional[int] = None
    staff_id: Optional[int] = None
    is_live_stream: bool = False
    exclude_schedule_id: Optional[int] = None


class ScheduleConflictOut(BaseModel):
    kind: str
    message: str


class ScheduleConflictResponse(BaseModel):
    has_conflict: bool
    conflicts: List[ScheduleConflictOut] = Field(default_factory=list)


class ActivityScheduleOut(BaseModel):
    id: int
    activity_id: int
    activity_type: ActivityTypeEnum
    location_id: Optional[int] = None
    staff_id: Optional[int] = None
    start_time: datetime
    end_time: datetime
    status: ScheduleStatusEnum
    core_activity_id: Optional[int] = None
    is_live_stream: bool = False
    current_capacity: int = 0
    group_ids: List[int] = Field(default_factory=list)


class ScheduleBatchError(BaseModel):
    start_time: datetime
    end_time: datetime
    kind: str
    message: str


class ScheduleBatchResult(BaseModel):
    """Partial-success outcome of a batch creation: one invalid member never aborts the rest"""
    successes: List[ActivityScheduleOut] = Field(default_factory=list)
    errors: List[ScheduleBatchError] = Field(default_factory=list)
