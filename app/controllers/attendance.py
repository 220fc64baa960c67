from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.activity import ActivitySchedule
from app.models.attendance_log import AttendanceLog
from app.models.camp import Camper
from app.models.user import User
from app.schemas.activity_schedule import ActivityTypeEnum, ScheduleStatusEnum
from app.schemas.attendance import (
    AttendanceCheckRequest,
    AttendanceCheckResult,
    AttendanceLogCorrection,
    AttendanceLogOut,
    CheckInMethodEnum,
    ParticipantStatusEnum,
)
from app.schemas.camp import CamperStatusEnum
from app.services.exceptions import NotFoundError, ValidationError
from app.services.schedule_store import ScheduleStore
from app.utils.datetime_utils import utc_now
from app.utils.logging_decorator import log_attendance_check, log_update

logger = logging.getLogger(__name__)

# Statuses that mean the camper was physically there
ATTENDED_STATUSES = (ParticipantStatusEnum.present, ParticipantStatusEnum.late)


class AttendanceRecorder:
    """Upserts attendance logs for a schedule and flips it to AttendanceChecked in one transaction"""

    def __init__(self, db: Session, strict: Optional[bool] = None):
        self.db = db
        self.store = ScheduleStore(db)
        self.strict = settings.STRICT_CAMPER_ATTENDANCE if strict is None else strict

    def record(
        self,
        schedule_id: int,
        camper_ids: Iterable[int],
        participant_status: ParticipantStatusEnum,
        recorded_by: Optional[int] = None,
        *,
        expected_types: Optional[Sequence[ActivityTypeEnum]] = None,
        require_root_schedule: bool = False,
        check_in_method: CheckInMethodEnum = CheckInMethodEnum.manual,
        note: Optional[str] = None,
        notes_by_camper: Optional[Dict[int, str]] = None,
        camper_status: Optional[CamperStatusEnum] = None,
    ) -> AttendanceCheckResult:
        camper_ids = list(dict.fromkeys(camper_ids))

        # One retry covers a concurrent writer inserting the same (camper, schedule) row first
        for attempt in range(2):
            try:
                result = self._record_once(
                    schedule_id, camper_ids, participant_status, recorded_by,
                    expected_types, require_root_schedule, check_in_method,
                    note, notes_by_camper or {}, camper_status,
                )
                self.db.commit()
                return result
            except IntegrityError:
                self.db.rollback()
                if attempt:
                    raise
                logger.warning(f"Concurrent attendance write on schedule {schedule_id}, retrying")
            except Exception:
                self.db.rollback()
                raise

    def _record_once(
        self,
        schedule_id: int,
        camper_ids: List[int],
        participant_status: ParticipantStatusEnum,
        recorded_by: Optional[int],
        expected_types: Optional[Sequence[ActivityTypeEnum]],
        require_root_schedule: bool,
        check_in_method: CheckInMethodEnum,
        note: Optional[str],
        notes_by_camper: Dict[int, str],
        camper_status: Optional[CamperStatusEnum],
    ) -> AttendanceCheckResult:
        schedule = self.store.get_schedule(schedule_id, for_update=True)
        if not schedule:
            raise NotFoundError("Activity schedule", schedule_id)
        activity = self.store.get_activity(schedule.activity_id)
        if not activity:
            raise NotFoundError("Activity", schedule.activity_id)
        if expected_types and activity.activity_type not in expected_types:
            names = " or ".join(t.value for t in expected_types)
            raise ValidationError(f"Schedule {schedule_id} is not a {names} activity schedule")
        if require_root_schedule and schedule.core_activity_id is not None:
            raise ValidationError(f"Schedule {schedule_id} is not a core activity schedule")

        campers = {}
        if camper_ids:
            campers = {
                camper.id: camper
                for camper in self.db.query(Camper).filter(Camper.id.in_(camper_ids)).all()
                if camper.camp_id == activity.camp_id
            }
        failed = [camper_id for camper_id in camper_ids if camper_id not in campers]
        if failed:
            if self.strict:
                raise ValidationError(f"Campers {failed} are not registered in camp {activity.camp_id}", field="camper_ids")
            logger.warning(f"Schedule {schedule_id}: skipping unknown campers {failed}")

        existing = {}
        if campers:
            existing = {
                log.camper_id: log
                for log in self.db.query(AttendanceLog).filter(
                    AttendanceLog.activity_schedule_id == schedule_id,
                    AttendanceLog.camper_id.in_(list(campers)),
                ).all()
            }

        now = utc_now()
        created = updated = 0
        for camper_id, camper in campers.items():
            log = existing.get(camper_id)
            if log is None:
                log = AttendanceLog(camper_id=camper_id, activity_schedule_id=schedule_id)
                created += 1
            else:
                updated += 1
            log.participant_status = participant_status
            log.check_in_method = check_in_method
            log.staff_id = recorded_by
            log.note = notes_by_camper.get(camper_id, note)
            log.timestamp = now
            self.db.add(log)

            if camper_status is not None and participant_status in ATTENDED_STATUSES:
                camper.status = camper_status
                self.db.add(camper)

        if created + updated:
            if not self.store.update_status(schedule, ScheduleStatusEnum.attendance_checked):
                logger.debug(f"Schedule {schedule_id} already had attendance checked")
        self.db.flush()

        logger.info(
            f"Schedule {schedule_id}: {created} attendance logs created, {updated} updated, {len(failed)} skipped"
        )
        return AttendanceCheckResult(
            activity_schedule_id=schedule_id,
            status=schedule.status,
            total=len(camper_ids),
            success_count=created + updated,
            fail_count=len(failed),
            created_count=created,
            updated_count=updated,
            failed_camper_ids=failed,
        )


def _recorder_id(current_user: Optional[User]) -> Optional[int]:
    return current_user.id if current_user else None


@log_attendance_check("Checked core activity attendance")
def check_core_activity_attendance(db: Session, request: AttendanceCheckRequest, current_user: Optional[User] = None) -> AttendanceCheckResult:
    return AttendanceRecorder(db).record(
        request.activity_schedule_id,
        request.camper_ids,
        request.participant_status,
        _recorder_id(current_user),
        expected_types=(ActivityTypeEnum.core,),
        require_root_schedule=True,
        note=request.note,
    )


@log_attendance_check("Checked optional activity attendance")
def check_optional_activity_attendance(db: Session, request: AttendanceCheckRequest, current_user: Optional[User] = None) -> AttendanceCheckResult:
    return AttendanceRecorder(db).record(
        request.activity_schedule_id,
        request.camper_ids,
        request.participant_status,
        _recorder_id(current_user),
        expected_types=(ActivityTypeEnum.optional,),
        note=request.note,
    )


@log_attendance_check("Checked campers in")
def check_in_attendance(db: Session, request: AttendanceCheckRequest, current_user: Optional[User] = None) -> AttendanceCheckResult:
    return AttendanceRecorder(db).record(
        request.activity_schedule_id,
        request.camper_ids,
        request.participant_status,
        _recorder_id(current_user),
        expected_types=(ActivityTypeEnum.checkin,),
        require_root_schedule=True,
        note=request.note,
        camper_status=CamperStatusEnum.checked_in,
    )


def _campers_without_checkin(db: Session, schedule_id: int, camper_ids: Iterable[int]) -> List[int]:
    store = ScheduleStore(db)
    schedule = store.get_schedule(schedule_id)
    activity = store.get_activity(schedule.activity_id) if schedule else None
    if not activity:
        return []
    checkin = store.find_by_type(activity.camp_id, ActivityTypeEnum.checkin)
    camper_ids = list(camper_ids)
    if not checkin:
        return camper_ids
    checked_in = {
        row[0]
        for row in db.query(AttendanceLog.camper_id).filter(
            AttendanceLog.activity_schedule_id == checkin.id,
            AttendanceLog.camper_id.in_(camper_ids),
            AttendanceLog.participant_status.in_(ATTENDED_STATUSES),
        ).all()
    }
    return [camper_id for camper_id in camper_ids if camper_id not in checked_in]


@log_attendance_check("Checked campers out")
def check_out_attendance(db: Session, request: AttendanceCheckRequest, current_user: Optional[User] = None) -> AttendanceCheckResult:
    result = AttendanceRecorder(db).record(
        request.activity_schedule_id,
        request.camper_ids,
        request.participant_status,
        _recorder_id(current_user),
        expected_types=(ActivityTypeEnum.checkout,),
        require_root_schedule=True,
        note=request.note,
        camper_status=CamperStatusEnum.checked_out,
    )

    recorded = [c for c in dict.fromkeys(request.camper_ids) if c not in result.failed_camper_ids]
    gaps = _campers_without_checkin(db, request.activity_schedule_id, recorded)
    if gaps:
        # Checkout is not blocked on a missing check-in; the gap is surfaced for follow-up
        logger.warning(f"Checkout on schedule {request.activity_schedule_id} for campers without check-in: {gaps}")
    return result


def record_recognized_attendance(
    db: Session,
    schedule_id: int,
    confidences: Dict[int, float],
    participant_status: ParticipantStatusEnum = ParticipantStatusEnum.present,
) -> AttendanceCheckResult:
    """Write attendance for campers matched by face recognition"""
    notes = {camper_id: f"AI Recognition: {confidence:.2%}" for camper_id, confidence in confidences.items()}
    return AttendanceRecorder(db).record(
        schedule_id,
        list(confidences),
        participant_status,
        check_in_method=CheckInMethodEnum.face_recognition,
        notes_by_camper=notes,
    )


def list_schedule_attendance(db: Session, schedule_id: int) -> List[AttendanceLogOut]:
    if not ScheduleStore(db).get_schedule(schedule_id):
        raise NotFoundError("Activity schedule", schedule_id)
    logs = (
        db.query(AttendanceLog)
        .filter(AttendanceLog.activity_schedule_id == schedule_id)
        .order_by(AttendanceLog.camper_id.asc())
        .all()
    )
    return [AttendanceLogOut.model_validate(log) for log in logs]


@log_update("attendance_logs", lambda result, *a, **kw: f"Corrected {len(result)} attendance logs")
def update_attendance_logs(
    db: Session, corrections: List[AttendanceLogCorrection], current_user: Optional[User] = None
) -> List[AttendanceLogOut]:
    ids = [c.attendance_log_id for c in corrections]
    logs = {log.id: log for log in db.query(AttendanceLog).filter(AttendanceLog.id.in_(ids)).all()} if ids else {}

    try:
        for correction in corrections:
            log = logs.get(correction.attendance_log_id)
            if not log:
                raise NotFoundError("Attendance log", correction.attendance_log_id)
            log.participant_status = correction.participant_status
            log.note = correction.note
            log.staff_id = _recorder_id(current_user)
            log.timestamp = utc_now()
            db.add(log)
        db.commit()
    except Exception:
        db.rollback()
        raise

    return [AttendanceLogOut.model_validate(logs[i]) for i in dict.fromkeys(ids)]
