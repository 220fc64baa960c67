from fastapi import HTTPException, Depends
from starlette import status

from app.core.security import get_current_user
from app.models.user import User
from app.schemas.user import RoleEnum


def get_schedule_manager(current_user: User = Depends(get_current_user)) -> User:
    """Dependency for endpoints that create or move schedules"""
    if current_user.role not in (RoleEnum.admin, RoleEnum.manager):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized: Admin or Manager access required"
        )
    return current_user


def get_staff_user(current_user: User = Depends(get_current_user)) -> User:
    """Dependency for endpoints that record attendance"""
    if current_user.role not in (RoleEnum.staff, RoleEnum.admin):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only staff can record attendance."
        )
    return current_user


def can_watch_attendance(user: User) -> bool:
    return user.role in (RoleEnum.admin, RoleEnum.manager, RoleEnum.staff)
