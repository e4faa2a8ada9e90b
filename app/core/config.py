from pydantic_settings import BaseSettings
from typing import List, Optional
from decimal import Decimal
from pathlib import Path

# Find .env file - check app/ directory first, then project root
BASE_DIR = Path(__file__).resolve().parent.parent.parent
APP_ENV = BASE_DIR / "app" / ".env"
ROOT_ENV = BASE_DIR / ".env"

# Use app/.env if it exists, otherwise try root .env
env_file = str(APP_ENV) if APP_ENV.exists() else (str(ROOT_ENV) if ROOT_ENV.exists() else ".env")


class Settings(BaseSettings):
    # Upstream system-of-record API
    UPSTREAM_API_BASE_URL: str = "http://localhost:5154"
    UPSTREAM_TIMEOUT_SECONDS: float = 30.0
    UPSTREAM_CONNECT_TIMEOUT_SECONDS: float = 10.0
    MEMBERS_PATH: str = "/api/admin/users"
    GOALS_PATH: str = "/api/goals"
    CONTRIBUTIONS_PATH: str = "/api/admin/contributions"
    LOANS_PATH: str = "/api/admin/loans"

    # Members fetch retry after credential setup
    AUTH_RETRY_DELAY_SECONDS: float = 1.0
    AUTH_FRESHNESS_SECONDS: float = 5.0

    # Report sessions
    REPORT_SESSION_MAX: int = 256
    REPORT_SESSION_IDLE_SECONDS: float = 1800.0

    # Member classification
    FAVORITE_MIN_CONTRIBUTIONS: int = 5
    FAVORITE_MIN_TOTAL: Decimal = Decimal("1000")

    # Export
    EXPORT_FILENAME_PREFIX: str = "community-report"

    # Application
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    AUDIT_LOG_ENABLED: bool = True
    LOGS_DIR: Optional[str] = None

    class Config:
        env_file = env_file
        case_sensitive = True


settings = Settings()

# Derived paths
LOGS_DIR = Path(settings.LOGS_DIR) if settings.LOGS_DIR else BASE_DIR / "logs"
