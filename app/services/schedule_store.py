"""
Named queries over schedules and the entities they reference.

All datetimes passed in are normalized to UTC before they reach the
database so comparisons stay consistent on backends that store naive
timestamps.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.activity import Activity, ActivitySchedule, GroupActivity
from app.models.camp import Camp, Camper, Group, Location
from app.models.user import User
from app.schemas.activity_schedule import ActivityTypeEnum, ScheduleStatusEnum
from app.utils.datetime_utils import ensure_utc


class ScheduleStore:
    def __init__(self, db: Session):
        self.db = db

    # Lookups

    def get_schedule(self, schedule_id: int, for_update: bool = False) -> Optional[ActivitySchedule]:
        query = self.db.query(ActivitySchedule).filter(ActivitySchedule.id == schedule_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_activity(self, activity_id: int) -> Optional[Activity]:
        return self.db.query(Activity).filter(Activity.id == activity_id).first()

    def get_camp(self, camp_id: int) -> Optional[Camp]:
        return self.db.query(Camp).filter(Camp.id == camp_id).first()

    def lock_camp(self, camp_id: int) -> Optional[Camp]:
        """Serialize schedule writes for one camp until the transaction ends"""
        return self.db.query(Camp).filter(Camp.id == camp_id).with_for_update().first()

    def lock_for_write(self, camp_id: int, location_id: Optional[int] = None, staff_id: Optional[int] = None) -> None:
        """Lock the camp, then the location, then the staff member.

        Locations and staff are shared between camps, so their rows are
        locked too. The order is fixed so two writers cannot deadlock.
        """
        self.lock_camp(camp_id)
        if location_id is not None:
            self.get_location(location_id, for_update=True)
        if staff_id is not None:
            self.get_user(staff_id, for_update=True)

    def get_user(self, user_id: int, for_update: bool = False) -> Optional[User]:
        query = self.db.query(User).filter(User.id == user_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_location(self, location_id: int, for_update: bool = False) -> Optional[Location]:
        query = self.db.query(Location).filter(Location.id == location_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_groups(self, group_ids: Iterable[int]) -> List[Group]:
        ids = list(group_ids)
        if not ids:
            return []
        return self.db.query(Group).filter(Group.id.in_(ids)).all()

    def list_camp_groups(self, camp_id: int) -> List[Group]:
        return self.db.query(Group).filter(Group.camp_id == camp_id).order_by(Group.id).all()

    def count_campers_in_groups(self, group_ids: Iterable[int]) -> int:
        ids = list(group_ids)
        if not ids:
            return 0
        return self.db.query(func.count(Camper.id)).filter(Camper.group_id.in_(ids)).scalar() or 0

    def count_campers_by_group(self, group_ids: Iterable[int]) -> dict:
        ids = list(group_ids)
        if not ids:
            return {}
        rows = (
            self.db.query(Camper.group_id, func.count(Camper.id))
            .filter(Camper.group_id.in_(ids))
            .group_by(Camper.group_id)
            .all()
        )
        return {group_id: count for group_id, count in rows}

    def get_group_ids_for_schedule(self, schedule_id: int) -> List[int]:
        rows = (
            self.db.query(GroupActivity.group_id)
            .filter(GroupActivity.activity_schedule_id == schedule_id)
            .order_by(GroupActivity.group_id)
            .all()
        )
        return [row[0] for row in rows]

    def get_group_ids_for_schedules(self, schedule_ids: Iterable[int]) -> set:
        ids = list(schedule_ids)
        if not ids:
            return set()
        rows = self.db.query(GroupActivity.group_id).filter(GroupActivity.activity_schedule_id.in_(ids)).all()
        return {row[0] for row in rows}

    # Overlap queries, all half-open: existing.start < end and existing.end > start

    def _overlapping(self, start: datetime, end: datetime, exclude_id: Optional[int]):
        query = self.db.query(ActivitySchedule).filter(
            ActivitySchedule.start_time < ensure_utc(end),
            ActivitySchedule.end_time > ensure_utc(start),
        )
        if exclude_id is not None:
            query = query.filter(ActivitySchedule.id != exclude_id)
        return query

    def list_overlapping(
        self,
        camp_id: int,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
        activity_types: Optional[Iterable[ActivityTypeEnum]] = None,
    ) -> List[ActivitySchedule]:
        query = (
            self._overlapping(start, end, exclude_id)
            .join(Activity, Activity.id == ActivitySchedule.activity_id)
            .filter(Activity.camp_id == camp_id)
        )
        if activity_types is not None:
            query = query.filter(Activity.activity_type.in_(list(activity_types)))
        return query.order_by(ActivitySchedule.start_time).all()

    def find_location_booking(
        self, location_id: int, start: datetime, end: datetime, exclude_id: Optional[int] = None
    ) -> Optional[ActivitySchedule]:
        return (
            self._overlapping(start, end, exclude_id)
            .filter(ActivitySchedule.location_id == location_id)
            .order_by(ActivitySchedule.start_time)
            .first()
        )

    def find_staff_booking(
        self, staff_id: int, start: datetime, end: datetime, exclude_id: Optional[int] = None
    ) -> Optional[ActivitySchedule]:
        return (
            self._overlapping(start, end, exclude_id)
            .filter(ActivitySchedule.staff_id == staff_id)
            .order_by(ActivitySchedule.start_time)
            .first()
        )

    def find_by_type(self, camp_id: int, activity_type: ActivityTypeEnum) -> Optional[ActivitySchedule]:
        return (
            self.db.query(ActivitySchedule)
            .join(Activity, Activity.id == ActivitySchedule.activity_id)
            .filter(Activity.camp_id == camp_id, Activity.activity_type == activity_type)
            .first()
        )

    def list_camp_schedules(
        self,
        camp_id: int,
        activity_type: Optional[ActivityTypeEnum] = None,
        staff_id: Optional[int] = None,
    ) -> List[ActivitySchedule]:
        query = (
            self.db.query(ActivitySchedule)
            .join(Activity, Activity.id == ActivitySchedule.activity_id)
            .filter(Activity.camp_id == camp_id)
        )
        if activity_type is not None:
            query = query.filter(Activity.activity_type == activity_type)
        if staff_id is not None:
            query = query.filter(ActivitySchedule.staff_id == staff_id)
        return query.order_by(ActivitySchedule.start_time).all()

    # Writes; the caller owns commit/rollback

    def create(self, schedule: ActivitySchedule, group_ids: Iterable[int] = ()) -> ActivitySchedule:
        schedule.start_time = ensure_utc(schedule.start_time)
        schedule.end_time = ensure_utc(schedule.end_time)
        self.db.add(schedule)
        self.db.flush()
        for group_id in group_ids:
            self.db.add(GroupActivity(group_id=group_id, activity_schedule_id=schedule.id))
        self.db.flush()
        return schedule

    def update_status(self, schedule: ActivitySchedule, status: ScheduleStatusEnum) -> bool:
        """Returns False when the schedule already had the status"""
        if schedule.status == status:
            return False
        schedule.status = status
        self.db.add(schedule)
        return True
