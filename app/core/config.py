from pydantic_settings import BaseSettings
from typing import List

# Import our environment configuration manager
from app.core.env_config import env_manager


class Settings(BaseSettings):
    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    ENVIRONMENT: str = "development"
    FRONTEND_URL: str = "http://127.0.0.1:8080"
    BACKEND_URL: str = "http://localhost:8000"
    WEBSOCKET_URL: str = "ws://localhost:8000"

    # CORS origins - will be derived from frontend URLs
    CORS_ORIGINS: List[str] = []

    # Zone used to lay repeating schedules onto camp days
    CAMP_TIMEZONE: str = "UTC"
    # When true an unknown camper fails the whole attendance batch
    STRICT_CAMPER_ATTENDANCE: bool = False

    # Recognition webhook deduplication
    IDEMPOTENCY_BACKEND: str = "memory"  # "memory" or "database"
    IDEMPOTENCY_TTL_SECONDS: int = 3600
    IDEMPOTENCY_PROCESSING_TIMEOUT_SECONDS: int = 300
    IDEMPOTENCY_WAIT_SECONDS: float = 5.0
    IDEMPOTENCY_POLL_INTERVAL_SECONDS: float = 0.2
    IDEMPOTENCY_SWEEP_INTERVAL_SECONDS: int = 60

    AI_SERVICE_ISSUER: str = "PythonAiService"
    MATCHER_TIMEOUT_SECONDS: float = 10.0
    BROADCAST_TIMEOUT_SECONDS: float = 5.0

    class Config:
        env_file = ".env"
        extra = "ignore"

    def __init__(self, **kwargs):
        # Apply environment-specific configuration before initializing parent
        url_config = env_manager.get_url_config()

        for key, value in url_config.items():
            if key.upper() not in kwargs:  # Don't override explicit kwargs
                kwargs[key.upper()] = value

        super().__init__(**kwargs)

        if not self.CORS_ORIGINS:
            self.CORS_ORIGINS = env_manager.get_cors_origins(self.FRONTEND_URL)

    @property
    def websocket_attendance_url(self) -> str:
        """Get the live attendance WebSocket URL pattern (without token)"""
        return f"{self.WEBSOCKET_URL}/attendance/ws"

    def get_environment_config(self) -> dict:
        """Get environment-specific configuration as a dictionary"""
        return {
            "environment": self.ENVIRONMENT,
            "frontend_url": self.FRONTEND_URL,
            "backend_url": self.BACKEND_URL,
            "websocket_attendance_url": self.websocket_attendance_url,
            "cors_origins": self.CORS_ORIGINS,
            "camp_timezone": self.CAMP_TIMEZONE,
            "strict_camper_attendance": self.STRICT_CAMPER_ATTENDANCE,
            "idempotency_backend": self.IDEMPOTENCY_BACKEND,
            "loaded_config_files": env_manager.get_loaded_files(),
        }


settings = Settings()
