"""
Admission rules for proposed activity schedules.

Hard failures (time ordering, missing references, staff role) are raised.
Soft conflicts (camp window, type overlap, location and staff double
booking) are returned in a fixed order so batch callers can collect them
per member and single-schedule callers can surface the first one.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional
import logging

from app.models.activity import Activity
from app.models.camp import Camp
from app.models.user import User
from app.schemas.activity_schedule import ActivityTypeEnum
from app.schemas.user import RoleEnum
from app.services.exceptions import NotFoundError, ValidationError
from app.services.schedule_store import ScheduleStore
from app.utils.datetime_utils import ensure_utc

logger = logging.getLogger(__name__)

ALL_TYPES = frozenset(ActivityTypeEnum)

# Which existing activity types a new schedule of a given type may not overlap.
# The matrix is symmetric so mutually exclusive types never coexist in a window.
BLOCKING_TYPES: Dict[ActivityTypeEnum, frozenset] = {
    ActivityTypeEnum.core: frozenset({
        ActivityTypeEnum.optional, ActivityTypeEnum.resting,
        ActivityTypeEnum.checkin, ActivityTypeEnum.checkout,
    }),
    ActivityTypeEnum.optional: frozenset({
        ActivityTypeEnum.core, ActivityTypeEnum.resting,
        ActivityTypeEnum.checkin, ActivityTypeEnum.checkout,
    }),
    ActivityTypeEnum.resting: ALL_TYPES,
    ActivityTypeEnum.checkin: ALL_TYPES,
    ActivityTypeEnum.checkout: ALL_TYPES,
}


class ConflictKind:
    camp = "camp"
    activity_type = "activity_type"
    location = "location"
    staff = "staff"


@dataclass(frozen=True)
class ScheduleConflict:
    kind: str
    message: str


def _fmt(dt: datetime) -> str:
    return ensure_utc(dt).strftime("%d/%m %H:%M")


class ConflictValidator:
    def __init__(self, store: ScheduleStore):
        self.store = store

    @staticmethod
    def validate_time_range(start_time: datetime, end_time: datetime) -> None:
        if ensure_utc(start_time) >= ensure_utc(end_time):
            raise ValidationError("Start time must be before end time", field="start_time")

    def validate_staff_assignment(
        self,
        staff_id: Optional[int],
        is_live_stream: bool = False,
        staff_required: bool = True,
    ) -> Optional[User]:
        """Resolve the assignee; only Staff may be assigned and livestreams may run unstaffed"""
        if staff_id is None:
            if staff_required and not is_live_stream:
                raise ValidationError("A staff member is required unless the schedule is a livestream", field="staff_id")
            return None

        staff = self.store.get_user(staff_id)
        if not staff:
            raise NotFoundError("Staff", staff_id)
        if staff.role != RoleEnum.staff:
            raise ValidationError(f"User {staff_id} does not hold the Staff role", field="staff_id")
        return staff

    def validate_location(self, location_id: Optional[int]) -> None:
        if location_id is not None and not self.store.get_location(location_id):
            raise NotFoundError("Location", location_id)

    def check_camp_window(self, camp: Camp, start_time: datetime, end_time: datetime) -> Optional[ScheduleConflict]:
        if ensure_utc(start_time) < ensure_utc(camp.start_date) or ensure_utc(end_time) > ensure_utc(camp.end_date):
            return ScheduleConflict(
                ConflictKind.camp,
                f"Schedule is outside camp duration ({_fmt(camp.start_date)} - {_fmt(camp.end_date)})",
            )
        return None

    def check_activity_type(
        self,
        activity: Activity,
        start_time: datetime,
        end_time: datetime,
        exclude_schedule_id: Optional[int] = None,
    ) -> Optional[ScheduleConflict]:
        blockers = BLOCKING_TYPES[ActivityTypeEnum(activity.activity_type)]
        overlapping = self.store.list_overlapping(
            activity.camp_id, start_time, end_time, exclude_schedule_id, activity_types=blockers
        )
        if not overlapping:
            return None

        existing = overlapping[0]
        existing_activity = self.store.get_activity(existing.activity_id)
        existing_type = ActivityTypeEnum(existing_activity.activity_type).value
        return ScheduleConflict(
            ConflictKind.activity_type,
            f"{ActivityTypeEnum(activity.activity_type).value} activity overlaps with {existing_type} "
            f"activity '{existing_activity.name}' ({_fmt(existing.start_time)} - {_fmt(existing.end_time)})",
        )

    def check_location(
        self,
        location_id: Optional[int],
        start_time: datetime,
        end_time: datetime,
        exclude_schedule_id: Optional[int] = None,
    ) -> Optional[ScheduleConflict]:
        if location_id is None:
            return None
        booking = self.store.find_location_booking(location_id, start_time, end_time, exclude_schedule_id)
        if booking:
            return ScheduleConflict(
                ConflictKind.location,
                f"Location {location_id} is already booked by schedule {booking.id} "
                f"({_fmt(booking.start_time)} - {_fmt(booking.end_time)})",
            )
        return None

    def check_staff(
        self,
        staff_id: Optional[int],
        start_time: datetime,
        end_time: datetime,
        exclude_schedule_id: Optional[int] = None,
    ) -> Optional[ScheduleConflict]:
        if staff_id is None:
            return None
        booking = self.store.find_staff_booking(staff_id, start_time, end_time, exclude_schedule_id)
        if booking:
            return ScheduleConflict(
                ConflictKind.staff,
                f"Staff {staff_id} is busy with schedule {booking.id} "
                f"({_fmt(booking.start_time)} - {_fmt(booking.end_time)})",
            )
        return None

    def find_conflicts(
        self,
        activity: Activity,
        camp: Camp,
        start_time: datetime,
        end_time: datetime,
        location_id: Optional[int] = None,
        staff_id: Optional[int] = None,
        exclude_schedule_id: Optional[int] = None,
    ) -> List[ScheduleConflict]:
        """All soft conflicts for the window, in camp, type, location, staff order"""
        checks = [
            self.check_camp_window(camp, start_time, end_time),
            self.check_activity_type(activity, start_time, end_time, exclude_schedule_id),
            self.check_location(location_id, start_time, end_time, exclude_schedule_id),
            self.check_staff(staff_id, start_time, end_time, exclude_schedule_id),
        ]
        conflicts = [conflict for conflict in checks if conflict is not None]
        if conflicts:
            logger.debug(
                f"Activity {activity.id} window {_fmt(start_time)}-{_fmt(end_time)}: "
                f"{[c.kind for c in conflicts]}"
            )
        return conflicts
