from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from app.db.session import Base
from app.schemas.attendance import ParticipantStatusEnum, CheckInMethodEnum


class AttendanceLog(Base):
    __tablename__ = "attendance_logs"
    __table_args__ = (
        UniqueConstraint('camper_id', 'activity_schedule_id', name='uq_attendance_camper_schedule'),
    )

    id = Column(Integer, primary_key=True, index=True)
    camper_id = Column(Integer, ForeignKey("campers.id"), nullable=False, index=True)
    activity_schedule_id = Column(Integer, ForeignKey("activity_schedules.id"), nullable=False, index=True)
    staff_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    participant_status = Column(Enum(ParticipantStatusEnum), nullable=False)
    check_in_method = Column(Enum(CheckInMethodEnum), nullable=False, default=CheckInMethodEnum.manual)
    note = Column(String, nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
