from decimal import Decimal
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: Optional[str] = None
    PGHOST: str = "localhost"
    PGDATABASE: str = "shuttle"
    PGUSER: str = "postgres"
    PGPASSWORD: str = ""
    PGSSLMODE: str = "prefer"

    # Application
    PROJECT_NAME: str = "Shuttle Booking Service"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Logging
    LOG_LEVEL: str = "INFO"
    SERVICE_NAME: str = "shuttle"

    # Pricing & credits
    DEFAULT_CREDITS_PER_PERSON: Decimal = Decimal("1.00")
    CURRENCY_SYMBOL: str = "R"

    # Feature flags
    CALENDAR_SYNC_ENABLED: bool = True
    CALENDAR_AVAILABILITY_ENABLED: bool = True
    REFUND_NOTIFICATIONS_ENABLED: bool = True

    # Concurrency
    TRIP_LOCK_TIMEOUT_SECONDS: float = 30.0

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.PGUSER}:{self.PGPASSWORD}@{self.PGHOST}/{self.PGDATABASE}?sslmode={self.PGSSLMODE}"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
