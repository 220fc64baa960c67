"""
Tests for schedule admission rules: time validity, camp containment,
activity-type exclusion, location and staff double booking.
"""

import pytest

from app.controllers.activity_schedule import create_core_schedules, create_optional_schedules, create_resting_schedules
from app.models.activity import ActivitySchedule
from app.schemas.activity_schedule import (
    ActivityTypeEnum,
    CoreScheduleCreate,
    OptionalScheduleCreate,
    RestingScheduleCreate,
)
from app.schemas.user import RoleEnum
from app.services.conflict_validator import ConflictKind, ConflictValidator
from app.services.exceptions import NotFoundError, ValidationError
from app.services.schedule_store import ScheduleStore

from conftest import at


def schedule_count(db):
    return db.query(ActivitySchedule).count()


class TestIntervals:
    def test_overlap_is_half_open(self, db, camp, make_activity, make_schedule):
        core = make_activity(camp, ActivityTypeEnum.core)
        make_schedule(core, at(days=2), at(days=2, minutes=60))
        store = ScheduleStore(db)

        assert len(store.list_overlapping(camp.id, at(days=2, minutes=59), at(days=2, minutes=120))) == 1
        assert store.list_overlapping(camp.id, at(days=2, minutes=60), at(days=2, minutes=120)) == []
        assert store.list_overlapping(camp.id, at(days=1), at(days=2)) == []

    def test_containment_overlaps(self, db, camp, make_activity, make_schedule):
        core = make_activity(camp, ActivityTypeEnum.core)
        make_schedule(core, at(days=2, minutes=10), at(days=2, minutes=20))

        assert len(ScheduleStore(db).list_overlapping(camp.id, at(days=2), at(days=3))) == 1


class TestTimeValidity:
    def test_start_after_end_fails_before_persistence(self, db, camp, make_activity):
        activity = make_activity(camp, ActivityTypeEnum.optional)
        payload = OptionalScheduleCreate(
            activity_id=activity.id, start_time=at(days=2), end_time=at(days=1), is_live_stream=True
        )

        with pytest.raises(ValidationError, match="Start time must be before end time"):
            create_optional_schedules(db, payload)
        assert schedule_count(db) == 0

    def test_equal_start_and_end_fails(self):
        with pytest.raises(ValidationError):
            ConflictValidator.validate_time_range(at(2), at(2))


class TestCampContainment:
    def test_window_outside_camp_is_soft_conflict(self, db, camp, make_activity):
        activity = make_activity(camp, ActivityTypeEnum.optional)
        payload = OptionalScheduleCreate(
            activity_id=activity.id, start_time=at(days=10), end_time=at(days=11), is_live_stream=True
        )

        result = create_optional_schedules(db, payload)

        assert result.successes == []
        assert len(result.errors) == 1
        assert result.errors[0].kind == ConflictKind.camp
        assert "outside camp duration" in result.errors[0].message
        assert schedule_count(db) == 0

    def test_window_touching_camp_bounds_is_inside(self, db, camp, make_activity):
        activity = make_activity(camp, ActivityTypeEnum.optional)
        payload = OptionalScheduleCreate(
            activity_id=activity.id, start_time=at(days=1), end_time=at(days=5), is_live_stream=True
        )

        result = create_optional_schedules(db, payload)

        assert len(result.successes) == 1
        assert result.errors == []


class TestActivityTypeOverlap:
    def test_core_overlapping_optional_names_the_type(self, db, camp, make_activity, make_schedule, make_user):
        optional = make_activity(camp, ActivityTypeEnum.optional, name="Kayaking")
        core = make_activity(camp, ActivityTypeEnum.core)
        make_schedule(optional, at(days=2), at(days=3))
        staff = make_user(RoleEnum.staff)

        payload = CoreScheduleCreate(
            activity_id=core.id,
            start_time=at(days=2, minutes=1),
            end_time=at(days=2, minutes=60),
            staff_id=staff.id,
        )
        result = create_core_schedules(db, payload)

        assert result.successes == []
        assert result.errors[0].kind == ConflictKind.activity_type
        assert "Optional" in result.errors[0].message
        assert "Kayaking" in result.errors[0].message
        assert schedule_count(db) == 1

    def test_optional_overlapping_core_is_rejected(self, db, camp, make_activity, make_schedule):
        core = make_activity(camp, ActivityTypeEnum.core)
        optional = make_activity(camp, ActivityTypeEnum.optional)
        make_schedule(core, at(days=2), at(days=3))

        result = create_optional_schedules(db, OptionalScheduleCreate(
            activity_id=optional.id, start_time=at(days=2, minutes=30), end_time=at(days=2, minutes=90),
            is_live_stream=True,
        ))

        assert result.errors[0].kind == ConflictKind.activity_type
        assert "Core" in result.errors[0].message

    def test_core_may_overlap_core(self, db, camp, make_activity, make_schedule, make_user):
        core = make_activity(camp, ActivityTypeEnum.core)
        make_schedule(core, at(days=2), at(days=3))
        staff = make_user(RoleEnum.staff)

        result = create_core_schedules(db, CoreScheduleCreate(
            activity_id=core.id, start_time=at(days=2), end_time=at(days=3), staff_id=staff.id
        ))

        assert len(result.successes) == 1

    def test_resting_blocks_on_any_overlap(self, db, camp, make_activity, make_schedule):
        core = make_activity(camp, ActivityTypeEnum.core)
        resting = make_activity(camp, ActivityTypeEnum.resting)
        make_schedule(core, at(days=2), at(days=2, minutes=60))

        result = create_resting_schedules(db, RestingScheduleCreate(
            activity_id=resting.id, start_time=at(days=2, minutes=30), end_time=at(days=2, minutes=120)
        ))

        assert result.successes == []
        assert result.errors[0].kind == ConflictKind.activity_type

    def test_optional_may_overlap_optional(self, db, camp, make_activity, make_schedule):
        kayaking = make_activity(camp, ActivityTypeEnum.optional, name="Kayaking")
        archery = make_activity(camp, ActivityTypeEnum.optional, name="Archery")
        make_schedule(kayaking, at(days=2), at(days=2, minutes=60))

        result = create_optional_schedules(db, OptionalScheduleCreate(
            activity_id=archery.id, start_time=at(days=2, minutes=15), end_time=at(days=2, minutes=45),
            is_live_stream=True,
        ))

        assert len(result.successes) == 1
        assert result.errors == []

    def test_existing_resting_blocks_optional(self, db, camp, make_activity, make_schedule):
        optional = make_activity(camp, ActivityTypeEnum.optional)
        make_schedule(make_activity(camp, ActivityTypeEnum.resting, name="Quiet Hour"), at(days=3), at(days=3, minutes=60))

        result = create_optional_schedules(db, OptionalScheduleCreate(
            activity_id=optional.id, start_time=at(days=3, minutes=15), end_time=at(days=3, minutes=45),
            is_live_stream=True,
        ))

        assert result.successes == []
        assert result.errors[0].kind == ConflictKind.activity_type
        assert result.errors[0].message.startswith("Optional activity overlaps with Resting activity")

    def test_existing_resting_blocks_core(self, db, camp, make_activity, make_schedule, make_user):
        core = make_activity(camp, ActivityTypeEnum.core)
        make_schedule(make_activity(camp, ActivityTypeEnum.resting, name="Quiet Hour"), at(days=3), at(days=3, minutes=60))
        staff = make_user(RoleEnum.staff)

        result = create_core_schedules(db, CoreScheduleCreate(
            activity_id=core.id, start_time=at(days=3, minutes=30), end_time=at(days=3, minutes=90), staff_id=staff.id
        ))

        assert result.successes == []
        assert "Resting" in result.errors[0].message
        assert "Quiet Hour" in result.errors[0].message

    def test_other_camps_do_not_block(self, db, make_camp, make_activity, make_schedule):
        camp_a = make_camp(name="A")
        camp_b = make_camp(name="B")
        make_schedule(make_activity(camp_b, ActivityTypeEnum.core), at(days=2), at(days=3))
        optional = make_activity(camp_a, ActivityTypeEnum.optional)

        result = create_optional_schedules(db, OptionalScheduleCreate(
            activity_id=optional.id, start_time=at(days=2), end_time=at(days=3), is_live_stream=True
        ))

        assert len(result.successes) == 1


class TestLocationAndStaff:
    def test_location_double_booking(self, db, camp, make_activity, make_schedule, make_location, make_user):
        core = make_activity(camp, ActivityTypeEnum.core)
        location = make_location()
        make_schedule(core, at(days=2), at(days=2, minutes=60), location_id=location.id)
        staff = make_user(RoleEnum.staff)

        result = create_core_schedules(db, CoreScheduleCreate(
            activity_id=core.id, start_time=at(days=2, minutes=30), end_time=at(days=2, minutes=90),
            location_id=location.id, staff_id=staff.id,
        ))

        assert result.errors[0].kind == ConflictKind.location

    def test_adjacent_location_bookings_are_allowed(self, db, camp, make_activity, make_schedule, make_location, make_user):
        core = make_activity(camp, ActivityTypeEnum.core)
        location = make_location()
        make_schedule(core, at(days=2), at(days=2, minutes=60), location_id=location.id)
        staff = make_user(RoleEnum.staff)

        result = create_core_schedules(db, CoreScheduleCreate(
            activity_id=core.id, start_time=at(days=2, minutes=60), end_time=at(days=2, minutes=120),
            location_id=location.id, staff_id=staff.id,
        ))

        assert len(result.successes) == 1

    def test_staff_busy_elsewhere(self, db, camp, make_activity, make_schedule, make_user):
        core = make_activity(camp, ActivityTypeEnum.core)
        staff = make_user(RoleEnum.staff)
        make_schedule(core, at(days=2), at(days=2, minutes=60), staff_id=staff.id)

        result = create_core_schedules(db, CoreScheduleCreate(
            activity_id=core.id, start_time=at(days=2, minutes=30), end_time=at(days=2, minutes=90),
            staff_id=staff.id,
        ))

        assert result.errors[0].kind == ConflictKind.staff

    def test_non_staff_role_is_hard_failure(self, db, camp, make_activity, make_user):
        core = make_activity(camp, ActivityTypeEnum.core)
        parent = make_user(RoleEnum.parent)

        with pytest.raises(ValidationError, match="Staff role"):
            create_core_schedules(db, CoreScheduleCreate(
                activity_id=core.id, start_time=at(days=2), end_time=at(days=3), staff_id=parent.id
            ))

    def test_unknown_staff_is_not_found(self, db, camp, make_activity):
        core = make_activity(camp, ActivityTypeEnum.core)

        with pytest.raises(NotFoundError):
            create_core_schedules(db, CoreScheduleCreate(
                activity_id=core.id, start_time=at(days=2), end_time=at(days=3), staff_id=999
            ))

    def test_livestream_may_run_without_staff(self, db, camp, make_activity):
        core = make_activity(camp, ActivityTypeEnum.core)

        result = create_core_schedules(db, CoreScheduleCreate(
            activity_id=core.id, start_time=at(days=2), end_time=at(days=3), is_live_stream=True
        ))

        assert len(result.successes) == 1
        assert result.successes[0].staff_id is None

    def test_staff_required_without_livestream(self, db, camp, make_activity):
        core = make_activity(camp, ActivityTypeEnum.core)

        with pytest.raises(ValidationError):
            create_core_schedules(db, CoreScheduleCreate(
                activity_id=core.id, start_time=at(days=2), end_time=at(days=3)
            ))


class TestFindConflicts:
    def test_excluded_schedule_does_not_conflict_with_itself(self, db, camp, make_activity, make_schedule, make_location, make_user):
        core = make_activity(camp, ActivityTypeEnum.core)
        location = make_location()
        staff = make_user(RoleEnum.staff)
        existing = make_schedule(core, at(days=2), at(days=3), location_id=location.id, staff_id=staff.id)
        validator = ConflictValidator(ScheduleStore(db))

        conflicts = validator.find_conflicts(
            core, camp, at(days=2), at(days=3), location.id, staff.id, exclude_schedule_id=existing.id
        )
        assert conflicts == []

    def test_conflicts_are_reported_in_order(self, db, camp, make_activity, make_schedule, make_location, make_user):
        optional = make_activity(camp, ActivityTypeEnum.optional)
        core = make_activity(camp, ActivityTypeEnum.core)
        location = make_location()
        staff = make_user(RoleEnum.staff)
        make_schedule(optional, at(days=4), at(days=6), location_id=location.id, staff_id=staff.id)
        validator = ConflictValidator(ScheduleStore(db))

        conflicts = validator.find_conflicts(core, camp, at(days=4), at(days=6), location.id, staff.id)

        assert [c.kind for c in conflicts] == [
            ConflictKind.camp, ConflictKind.activity_type, ConflictKind.location, ConflictKind.staff,
        ]


class TestBatchPartialSuccess:
    def test_repeat_keeps_valid_days_when_some_fail(self, db, camp, make_activity, make_schedule):
        optional = make_activity(camp, ActivityTypeEnum.optional)
        core = make_activity(camp, ActivityTypeEnum.core)
        # Camp runs 07-02 08:00 to 07-06 08:00; block the 07-03 slot with a core session
        make_schedule(core, at(days=2, minutes=120), at(days=2, minutes=180))

        result = create_optional_schedules(db, OptionalScheduleCreate(
            activity_id=optional.id,
            start_time=at(days=1, minutes=120),
            end_time=at(days=1, minutes=180),
            is_live_stream=True,
            is_repeat=True,
        ))

        assert len(result.successes) == 3
        assert sorted(e.kind for e in result.errors) == [ConflictKind.activity_type, ConflictKind.camp]
        assert schedule_count(db) == 4

    def test_resting_blocks_later_resting(self, db, camp, make_activity):
        resting = make_activity(camp, ActivityTypeEnum.resting)

        first = create_resting_schedules(db, RestingScheduleCreate(
            activity_id=resting.id, start_time=at(days=2), end_time=at(days=2, minutes=60)
        ))
        second = create_resting_schedules(db, RestingScheduleCreate(
            activity_id=resting.id, start_time=at(days=2, minutes=30), end_time=at(days=2, minutes=90)
        ))

        assert len(first.successes) == 1
        assert second.successes == []
