from functools import wraps
from typing import Optional, Callable, Union
from sqlalchemy.orm import Session
from app.models.user import User
from app.services.logging_service import LoggingService
import logging

# Audit decorators for controller use cases. They run after the wrapped
# function returns; an audit failure is logged and never changes the result.

logger = logging.getLogger(__name__)


def _find_context(args, kwargs):
    db = kwargs.get("db")
    user = kwargs.get("current_user") or kwargs.get("user")
    for arg in args:
        if db is None and isinstance(arg, Session):
            db = arg
        elif user is None and isinstance(arg, User):
            user = arg
    return db, user


def log_activity(
    action: str,
    description: Optional[Union[str, Callable]] = None,
    table_name: Optional[str] = None,
    get_record_id: Optional[Callable] = None,
    get_details: Optional[Callable] = None,
):
    """
    Decorator to log activities in controller functions

    Args:
        action: Action type (CREATE, UPDATE, CHECK_ATTENDANCE, ...)
        description: Custom description or callable(result, *args, **kwargs)
        table_name: Table name affected
        get_record_id: Function to extract record ID from function result
        get_details: Function to extract additional details
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            result = func(*args, **kwargs)

            try:
                db, user = _find_context(args, kwargs)
                if db is not None and user is not None:
                    final_description = description
                    if callable(description):
                        final_description = description(result, *args, **kwargs)

                    record_id = get_record_id(result, *args, **kwargs) if get_record_id else None
                    details = get_details(result, *args, **kwargs) if get_details else None

                    LoggingService.log_activity(
                        db=db,
                        user=user,
                        action=action,
                        description=final_description or f"Performed {action.lower()} action",
                        table_name=table_name,
                        record_id=record_id,
                        details=details,
                    )
            except Exception as e:
                logger.error(f"Failed to log activity for {func.__name__}: {e}")

            return result

        return wrapper

    return decorator


def extract_id_from_result(result, *args, **kwargs):
    """Extract ID from function result"""
    if hasattr(result, 'id'):
        return result.id
    if isinstance(result, dict) and 'id' in result:
        return result['id']
    return None


def log_create(table_name: str, description: Optional[Union[str, Callable]] = None, get_details: Optional[Callable] = None):
    """
    Decorator for CREATE operations

    Usage:
        @log_create("activity_schedules", "Created core schedules")
        def create_core_schedules(db, payload, current_user):
            return batch_result
    """
    return log_activity(
        action="CREATE",
        description=description or f"Created new {table_name}",
        table_name=table_name,
        get_record_id=extract_id_from_result,
        get_details=get_details,
    )


def log_update(table_name: str, description: Optional[Union[str, Callable]] = None, get_details: Optional[Callable] = None):
    """Decorator for UPDATE operations"""
    return log_activity(
        action="UPDATE",
        description=description or f"Updated {table_name}",
        table_name=table_name,
        get_record_id=extract_id_from_result,
        get_details=get_details,
    )


def log_attendance_check(description: Optional[Union[str, Callable]] = None):
    """Decorator for attendance check entry points"""
    return log_activity(
        action="CHECK_ATTENDANCE",
        description=description,
        table_name="attendance_logs",
        get_record_id=lambda result, *a, **kw: getattr(result, "activity_schedule_id", None),
        get_details=lambda result, *a, **kw: {
            "success_count": result.success_count,
            "failed_camper_ids": result.failed_camper_ids,
        },
    )
