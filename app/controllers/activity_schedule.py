from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.activity import Activity, ActivitySchedule
from app.models.camp import Camp
from app.models.user import User
from app.schemas.activity_schedule import (
    ActivityScheduleOut,
    ActivityScheduleUpdate,
    ActivityTypeEnum,
    CheckinCheckoutScheduleCreate,
    CoreScheduleCreate,
    OptionalScheduleCreate,
    RestingScheduleCreate,
    ScheduleBatchError,
    ScheduleBatchResult,
    ScheduleConflictCheck,
    ScheduleConflictOut,
    ScheduleConflictResponse,
    ScheduleStatusEnum,
)
from app.schemas.camp import AvailableGroupOut
from app.services.conflict_validator import ConflictValidator
from app.services.exceptions import NotFoundError, ScheduleConflictError, ValidationError
from app.services.schedule_store import ScheduleStore
from app.utils.datetime_utils import camp_timezone, ensure_utc, expand_daily_windows
from app.utils.logging_decorator import log_create, log_update

logger = logging.getLogger(__name__)

Window = Tuple[datetime, datetime]

# Types that make a camp window unavailable for core group assignment
CORE_BLOCKING_TYPES = (
    ActivityTypeEnum.optional,
    ActivityTypeEnum.resting,
    ActivityTypeEnum.checkin,
    ActivityTypeEnum.checkout,
)


def to_schedule_out(store: ScheduleStore, schedule: ActivitySchedule, activity: Optional[Activity] = None) -> ActivityScheduleOut:
    activity = activity or store.get_activity(schedule.activity_id)
    return ActivityScheduleOut(
        id=schedule.id,
        activity_id=schedule.activity_id,
        activity_type=activity.activity_type,
        location_id=schedule.location_id,
        staff_id=schedule.staff_id,
        start_time=ensure_utc(schedule.start_time),
        end_time=ensure_utc(schedule.end_time),
        status=schedule.status,
        core_activity_id=schedule.core_activity_id,
        is_live_stream=bool(schedule.is_live_stream),
        current_capacity=schedule.current_capacity or 0,
        group_ids=store.get_group_ids_for_schedule(schedule.id),
    )


def _load_activity(store: ScheduleStore, activity_id: int, *expected: ActivityTypeEnum) -> Tuple[Activity, Camp]:
    activity = store.get_activity(activity_id)
    if not activity:
        raise NotFoundError("Activity", activity_id)
    if expected and activity.activity_type not in expected:
        names = " or ".join(t.value for t in expected)
        raise ValidationError(f"Activity {activity_id} is not a {names} activity", field="activity_id")
    camp = store.get_camp(activity.camp_id)
    if not camp:
        raise NotFoundError("Camp", activity.camp_id)
    return activity, camp


def _windows(payload, camp: Camp) -> List[Window]:
    if getattr(payload, "is_repeat", False):
        return expand_daily_windows(
            payload.start_time,
            payload.end_time,
            camp.start_date,
            camp.end_date,
            camp_timezone(settings.CAMP_TIMEZONE),
        )
    return [(ensure_utc(payload.start_time), ensure_utc(payload.end_time))]


def _resolve_groups(store: ScheduleStore, camp: Camp, group_ids: Iterable[int]) -> List[int]:
    wanted = list(dict.fromkeys(group_ids))
    found = {group.id: group for group in store.get_groups(wanted)}
    for group_id in wanted:
        group = found.get(group_id)
        if not group or group.camp_id != camp.id:
            raise NotFoundError("Group", group_id)
    return wanted


def _create_batch(
    db: Session,
    activity: Activity,
    camp: Camp,
    windows: List[Window],
    *,
    location_id: Optional[int] = None,
    staff_id: Optional[int] = None,
    is_live_stream: bool = False,
    group_ids: Iterable[int] = (),
    capacity: int = 0,
) -> ScheduleBatchResult:
    """Validate and persist each window independently; conflicts become errors, not exceptions"""
    store = ScheduleStore(db)
    validator = ConflictValidator(store)
    group_ids = list(group_ids)
    result = ScheduleBatchResult()
    created: List[ActivitySchedule] = []

    try:
        # Re-validation below runs under the camp, location and staff locks so concurrent batches cannot interleave
        store.lock_for_write(camp.id, location_id, staff_id)
        for start, end in windows:
            conflicts = validator.find_conflicts(activity, camp, start, end, location_id, staff_id)
            if conflicts:
                first = conflicts[0]
                result.errors.append(ScheduleBatchError(start_time=start, end_time=end, kind=first.kind, message=first.message))
                continue

            schedule = ActivitySchedule(
                activity_id=activity.id,
                location_id=location_id,
                staff_id=staff_id,
                start_time=start,
                end_time=end,
                status=ScheduleStatusEnum.scheduled,
                is_live_stream=is_live_stream,
                current_capacity=capacity,
            )
            created.append(store.create(schedule, group_ids))
        db.commit()
    except Exception:
        db.rollback()
        raise

    result.successes = [to_schedule_out(store, schedule, activity) for schedule in created]
    logger.info(
        f"Activity {activity.id} ({activity.activity_type.value}): "
        f"{len(result.successes)} schedules created, {len(result.errors)} rejected"
    )
    return result


def _batch_details(result: ScheduleBatchResult, *args, **kwargs) -> dict:
    return {
        "created_ids": [s.id for s in result.successes],
        "errors": [e.message for e in result.errors],
    }


@log_create("activity_schedules", lambda result, *a, **kw: f"Created {len(result.successes)} core schedules", _batch_details)
def create_core_schedules(db: Session, payload: CoreScheduleCreate, current_user: Optional[User] = None) -> ScheduleBatchResult:
    store = ScheduleStore(db)
    validator = ConflictValidator(store)

    activity, camp = _load_activity(store, payload.activity_id, ActivityTypeEnum.core)
    validator.validate_time_range(payload.start_time, payload.end_time)
    validator.validate_staff_assignment(payload.staff_id, payload.is_live_stream)
    validator.validate_location(payload.location_id)
    group_ids = _resolve_groups(store, camp, payload.group_ids)

    return _create_batch(
        db, activity, camp, _windows(payload, camp),
        location_id=payload.location_id,
        staff_id=payload.staff_id,
        is_live_stream=payload.is_live_stream,
        group_ids=group_ids,
        capacity=store.count_campers_in_groups(group_ids),
    )


@log_create("activity_schedules", lambda result, *a, **kw: f"Created {len(result.successes)} optional schedules", _batch_details)
def create_optional_schedules(db: Session, payload: OptionalScheduleCreate, current_user: Optional[User] = None) -> ScheduleBatchResult:
    store = ScheduleStore(db)
    validator = ConflictValidator(store)

    activity, camp = _load_activity(store, payload.activity_id, ActivityTypeEnum.optional)
    validator.validate_time_range(payload.start_time, payload.end_time)
    validator.validate_staff_assignment(payload.staff_id, payload.is_live_stream)
    validator.validate_location(payload.location_id)

    return _create_batch(
        db, activity, camp, _windows(payload, camp),
        location_id=payload.location_id,
        staff_id=payload.staff_id,
        is_live_stream=payload.is_live_stream,
    )


@log_create("activity_schedules", lambda result, *a, **kw: f"Created {len(result.successes)} resting schedules", _batch_details)
def create_resting_schedules(db: Session, payload: RestingScheduleCreate, current_user: Optional[User] = None) -> ScheduleBatchResult:
    store = ScheduleStore(db)
    activity, camp = _load_activity(store, payload.activity_id, ActivityTypeEnum.resting)
    ConflictValidator.validate_time_range(payload.start_time, payload.end_time)

    return _create_batch(db, activity, camp, _windows(payload, camp))


def _check_boundary(activity: Activity, camp: Camp, start: datetime, end: datetime) -> None:
    """Check-in opens the camp and check-out closes it"""
    if activity.activity_type == ActivityTypeEnum.checkin and ensure_utc(start) != ensure_utc(camp.start_date):
        raise ValidationError("Check-in must start exactly when the camp starts", field="start_time")
    if activity.activity_type == ActivityTypeEnum.checkout and ensure_utc(end) != ensure_utc(camp.end_date):
        raise ValidationError("Check-out must end exactly when the camp ends", field="end_time")


def _raise_outside_camp(validator: ConflictValidator, camp: Camp, start: datetime, end: datetime) -> None:
    outside = validator.check_camp_window(camp, start, end)
    if outside:
        raise ScheduleConflictError(outside.message)


def _raise_first(conflicts) -> None:
    if conflicts:
        raise ScheduleConflictError(conflicts[0].message, [c.message for c in conflicts])


@log_create("activity_schedules", "Created check-in/check-out schedule")
def create_checkin_checkout_schedule(
    db: Session, payload: CheckinCheckoutScheduleCreate, current_user: Optional[User] = None
) -> ActivityScheduleOut:
    store = ScheduleStore(db)
    validator = ConflictValidator(store)

    activity, camp = _load_activity(store, payload.activity_id, ActivityTypeEnum.checkin, ActivityTypeEnum.checkout)
    validator.validate_time_range(payload.start_time, payload.end_time)
    validator.validate_location(payload.location_id)
    start, end = ensure_utc(payload.start_time), ensure_utc(payload.end_time)

    try:
        store.lock_for_write(camp.id, payload.location_id)
        _raise_outside_camp(validator, camp, start, end)
        _check_boundary(activity, camp, start, end)

        if store.find_by_type(camp.id, activity.activity_type):
            raise ScheduleConflictError(f"Camp {camp.id} already has a {activity.activity_type.value} schedule")

        _raise_first(validator.find_conflicts(activity, camp, start, end, payload.location_id))

        group_ids = [group.id for group in store.list_camp_groups(camp.id)]
        schedule = store.create(
            ActivitySchedule(
                activity_id=activity.id,
                location_id=payload.location_id,
                staff_id=None,
                start_time=start,
                end_time=end,
                status=ScheduleStatusEnum.scheduled,
                is_live_stream=False,
                current_capacity=store.count_campers_in_groups(group_ids),
            ),
            group_ids,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Created {activity.activity_type.value} schedule {schedule.id} for camp {camp.id}")
    return to_schedule_out(store, schedule, activity)


@log_update("activity_schedules", "Rescheduled activity schedule")
def reschedule_schedule(
    db: Session, schedule_id: int, payload: ActivityScheduleUpdate, current_user: Optional[User] = None
) -> ActivityScheduleOut:
    store = ScheduleStore(db)
    validator = ConflictValidator(store)

    schedule = store.get_schedule(schedule_id)
    if not schedule:
        raise NotFoundError("Activity schedule", schedule_id)
    if schedule.status == ScheduleStatusEnum.attendance_checked:
        raise ValidationError(f"Schedule {schedule_id} already has attendance checked and cannot be rescheduled")

    activity, camp = _load_activity(store, schedule.activity_id)
    validator.validate_time_range(payload.start_time, payload.end_time)
    start, end = ensure_utc(payload.start_time), ensure_utc(payload.end_time)

    activity_type = activity.activity_type
    location_id, staff_id, is_live_stream = payload.location_id, payload.staff_id, payload.is_live_stream
    if activity_type == ActivityTypeEnum.resting:
        location_id, staff_id, is_live_stream = None, None, False
    elif activity_type in (ActivityTypeEnum.checkin, ActivityTypeEnum.checkout):
        staff_id, is_live_stream = None, False
    else:
        validator.validate_staff_assignment(staff_id, is_live_stream)
    validator.validate_location(location_id)

    try:
        store.lock_for_write(camp.id, location_id, staff_id)
        schedule = store.get_schedule(schedule_id, for_update=True)
        if activity_type in (ActivityTypeEnum.checkin, ActivityTypeEnum.checkout):
            _raise_outside_camp(validator, camp, start, end)
            _check_boundary(activity, camp, start, end)
        _raise_first(validator.find_conflicts(activity, camp, start, end, location_id, staff_id, exclude_schedule_id=schedule_id))

        schedule.start_time = start
        schedule.end_time = end
        schedule.location_id = location_id
        schedule.staff_id = staff_id
        schedule.is_live_stream = is_live_stream
        db.add(schedule)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Rescheduled schedule {schedule_id} to {start.isoformat()} - {end.isoformat()}")
    return to_schedule_out(store, schedule, activity)


def check_schedule_conflicts(db: Session, payload: ScheduleConflictCheck) -> ScheduleConflictResponse:
    """Dry run of the validator; nothing is persisted"""
    store = ScheduleStore(db)
    validator = ConflictValidator(store)

    activity, camp = _load_activity(store, payload.activity_id)
    validator.validate_time_range(payload.start_time, payload.end_time)
    validator.validate_location(payload.location_id)
    staff_id = payload.staff_id
    if activity.activity_type in (ActivityTypeEnum.core, ActivityTypeEnum.optional):
        validator.validate_staff_assignment(staff_id, payload.is_live_stream)
    else:
        staff_id = None

    conflicts = validator.find_conflicts(
        activity, camp, payload.start_time, payload.end_time,
        payload.location_id, staff_id, payload.exclude_schedule_id,
    )
    return ScheduleConflictResponse(
        has_conflict=bool(conflicts),
        conflicts=[ScheduleConflictOut(kind=c.kind, message=c.message) for c in conflicts],
    )


def get_schedule(db: Session, schedule_id: int) -> ActivityScheduleOut:
    store = ScheduleStore(db)
    schedule = store.get_schedule(schedule_id)
    if not schedule:
        raise NotFoundError("Activity schedule", schedule_id)
    return to_schedule_out(store, schedule)


def list_camp_schedules(
    db: Session, camp_id: int, activity_type: Optional[ActivityTypeEnum] = None
) -> List[ActivityScheduleOut]:
    store = ScheduleStore(db)
    if not store.get_camp(camp_id):
        raise NotFoundError("Camp", camp_id)
    return [to_schedule_out(store, s) for s in store.list_camp_schedules(camp_id, activity_type=activity_type)]


def list_staff_schedules(db: Session, camp_id: int, staff_id: int) -> List[ActivityScheduleOut]:
    store = ScheduleStore(db)
    if not store.get_camp(camp_id):
        raise NotFoundError("Camp", camp_id)
    if not store.get_user(staff_id):
        raise NotFoundError("Staff", staff_id)
    return [to_schedule_out(store, s) for s in store.list_camp_schedules(camp_id, staff_id=staff_id)]


def get_available_groups_for_core(db: Session, camp_id: int, start_time: datetime, end_time: datetime) -> List[AvailableGroupOut]:
    """Groups not already booked on a core schedule overlapping the window"""
    store = ScheduleStore(db)
    if not store.get_camp(camp_id):
        raise NotFoundError("Camp", camp_id)
    ConflictValidator.validate_time_range(start_time, end_time)

    blocking = store.list_overlapping(camp_id, start_time, end_time, activity_types=CORE_BLOCKING_TYPES)
    if blocking:
        blocker = store.get_activity(blocking[0].activity_id)
        raise ScheduleConflictError(
            f"Camp {camp_id} is busy with {blocker.activity_type.value} activity '{blocker.name}' during this window"
        )

    overlapping_core = store.list_overlapping(camp_id, start_time, end_time, activity_types=[ActivityTypeEnum.core])
    booked = store.get_group_ids_for_schedules(s.id for s in overlapping_core)

    groups = [group for group in store.list_camp_groups(camp_id) if group.id not in booked]
    counts = store.count_campers_by_group(group.id for group in groups)
    return [
        AvailableGroupOut(
            id=group.id,
            name=group.name,
            camp_id=group.camp_id,
            supervisor_id=group.supervisor_id,
            camper_count=counts.get(group.id, 0),
        )
        for group in groups
    ]
