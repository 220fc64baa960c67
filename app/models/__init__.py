from .user import User
from .camp import Camp, Location, Group, Camper
from .activity import Activity, ActivitySchedule, GroupActivity
from .attendance_log import AttendanceLog
from .idempotency_record import IdempotencyRecord
from .system_log import SystemLog
