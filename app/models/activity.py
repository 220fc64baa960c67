from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from app.db.session import Base
from app.schemas.activity_schedule import ActivityTypeEnum, ScheduleStatusEnum


class Activity(Base):
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True)
    camp_id = Column(Integer, ForeignKey("camps.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    activity_type = Column(Enum(ActivityTypeEnum), nullable=False)


class ActivitySchedule(Base):
    __tablename__ = "activity_schedules"

    id = Column(Integer, primary_key=True, index=True)
    activity_id = Column(Integer, ForeignKey("activities.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=True, index=True)
    staff_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(Enum(ScheduleStatusEnum), nullable=False, default=ScheduleStatusEnum.scheduled)
    # Set only on child sessions hanging off a core schedule
    core_activity_id = Column(Integer, ForeignKey("activity_schedules.id"), nullable=True)
    is_live_stream = Column(Boolean, nullable=False, default=False)
    current_capacity = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True)


class GroupActivity(Base):
    __tablename__ = "group_activities"
    __table_args__ = (UniqueConstraint('group_id', 'activity_schedule_id', name='uq_group_activity'),)

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("camper_groups.id"), nullable=False, index=True)
    activity_schedule_id = Column(Integer, ForeignKey("activity_schedules.id", ondelete="CASCADE"), nullable=False, index=True)
