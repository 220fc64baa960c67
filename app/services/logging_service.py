from sqlalchemy.orm import Session
from typing import Optional, Dict, Any
from app.models.system_log import SystemLog
from app.models.user import User


class LoggingService:
    """Service for writing the schedule and attendance audit trail"""

    @staticmethod
    def log_activity(
        db: Session,
        user: Optional[User],
        action: str,
        description: str,
        table_name: Optional[str] = None,
        record_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> SystemLog:
        """
        Log a system activity

        Args:
            db: Database session
            user: User who performed the action, None for service callers
            action: Action type (CREATE, UPDATE, CHECK_ATTENDANCE, ...)
            description: Human-readable description of the action
            table_name: Name of the table affected
            record_id: ID of the record affected
            details: Additional context as dictionary
        """
        log_entry = SystemLog(
            user_id=user.id if user else None,
            user_name=user.full_name if user else "system",
            action=action.upper(),
            description=description,
            table_name=table_name,
            record_id=record_id,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent
        )

        db.add(log_entry)
        db.commit()
        db.refresh(log_entry)

        return log_entry

    @staticmethod
    def get_action_description(action: str, table_name: str) -> str:
        """Generate human-readable descriptions for common actions"""
        descriptions = {
            "CREATE": f"Created new {table_name}",
            "UPDATE": f"Updated {table_name}",
            "CHECK_ATTENDANCE": f"Checked attendance for {table_name}",
            "RECOGNITION": f"Recorded recognized attendance for {table_name}",
        }
        return descriptions.get(action.upper(), f"Performed {action.lower()} on {table_name}")

    @staticmethod
    def log_recognition_update(db: Session, schedule_id: int, request_id: str, created: int, updated: int):
        """Log attendance written on behalf of the recognition service"""
        return LoggingService.log_activity(
            db=db,
            user=None,
            action="RECOGNITION",
            description=LoggingService.get_action_description("RECOGNITION", f"schedule {schedule_id}"),
            table_name="attendance_logs",
            record_id=schedule_id,
            details={"request_id": request_id, "created": created, "updated": updated},
        )
