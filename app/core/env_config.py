"""
Environment file layering for the attendance service.

Files are applied from most to least specific and never override a
variable the process already has, so deployment-provided values win:

    $CAMP_ENV_FILE -> .env.{ENVIRONMENT} -> .env.local -> .env
"""

import os
from typing import Dict, List, Optional
from dotenv import load_dotenv
import logging

logger = logging.getLogger(__name__)

REQUIRED_VARS = ("DATABASE_URL", "SECRET_KEY")

DEV_ORIGINS = (
    "http://localhost:8080",
    "http://127.0.0.1:8080",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
)


class EnvConfigManager:
    def __init__(self, env: Optional[str] = None):
        self.env = env or os.getenv("ENVIRONMENT", "development")
        self.loaded_files: List[str] = []
        self.load()

    def candidate_files(self) -> List[str]:
        files = [f".env.{self.env}", ".env.local", ".env"]
        explicit = os.getenv("CAMP_ENV_FILE")
        if explicit:
            files.insert(0, explicit)
        return files

    def load(self):
        for path in self.candidate_files():
            if os.path.exists(path) and path not in self.loaded_files:
                load_dotenv(path, override=False)
                self.loaded_files.append(path)
                logger.info(f"Loaded configuration from: {path}")

        if not self.loaded_files:
            logger.warning("No .env files found, using process environment only")

    def get_loaded_files(self) -> List[str]:
        return list(self.loaded_files)

    def missing_vars(self, names=REQUIRED_VARS) -> List[str]:
        return [name for name in names if not os.getenv(name)]

    def get_url_config(self) -> Dict[str, str]:
        """URL settings resolved after the env files are applied"""
        return {
            "environment": self.env,
            "frontend_url": os.getenv("FRONTEND_URL", "http://localhost:8080"),
            "backend_url": os.getenv("BACKEND_URL", "http://localhost:8000"),
            "websocket_url": os.getenv("WEBSOCKET_URL", "ws://localhost:8000"),
        }

    @staticmethod
    def get_cors_origins(frontend_url: str) -> List[str]:
        """The dashboard origin, plus the usual dev servers when it runs locally"""
        origins = [frontend_url]
        if "localhost" in frontend_url or "127.0.0.1" in frontend_url:
            origins.extend(origin for origin in DEV_ORIGINS if origin != frontend_url)
        return origins


env_manager = EnvConfigManager()

_missing = env_manager.missing_vars()
if _missing:
    logger.critical(f"Missing required environment variables: {_missing}")
