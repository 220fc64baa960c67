"""
Configuration API endpoints
Provides environment information and a health check
"""

from fastapi import APIRouter, Depends, HTTPException, status
from app.core.config import settings
from app.core.env_config import env_manager
from app.core.security import get_current_user
from app.models.user import User

router = APIRouter()


@router.get("/environment")
async def get_environment_config():
    """Get environment configuration (public endpoint for basic info)"""
    return {
        "environment": settings.ENVIRONMENT,
        "backend_url": settings.BACKEND_URL,
        "websocket_attendance_url": settings.websocket_attendance_url,
    }


@router.get("/full")
async def get_full_config(current_user: User = Depends(get_current_user)):
    """Get full configuration details (authenticated users only)"""
    return settings.get_environment_config()


@router.get("/health")
async def config_health_check():
    """Health check endpoint for configuration system"""
    missing = env_manager.missing_vars()
    if missing:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Missing required configurations: {missing}"
        )

    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "idempotency_backend": settings.IDEMPOTENCY_BACKEND,
        "strict_camper_attendance": settings.STRICT_CAMPER_ATTENDANCE,
    }
