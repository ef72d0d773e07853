## coopbus/core/config.py

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the application
    """

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", case_sensitive=False
    )

    environment: str = "development"
    allowed_cors_urls: str = "*"

    log_level: str = "INFO"
    log_file: Optional[str] = None

    redis_host: str = "localhost"
    redis_port: str = "6379"
    redis_username: Optional[str] = None
    redis_password: Optional[str] = None

    db_host: str = "localhost"
    db_user: str = "coopbus"
    db_password: str = ""
    db_database: str = "coopbus"
    db_port: int = 3306

    # Full SQLAlchemy URL, overrides the MySQL parts above when set
    database_url: Optional[str] = None

    google_maps_api_key: Optional[str] = None
    google_maps_timeout_seconds: int = 20

    # Service cost defaults
    driver_hourly_rate: float = 12.21
    fuel_price_per_liter: float = 1.45
    vehicle_mpg: float = 35.0
    admin_overhead_percent: float = 15.0
    fallback_duration_hours: float = 1.5
    fallback_distance_miles: float = 20.0

    # Pricing defaults for routes that carry no configuration of their own
    default_maximum_acceptable_fare: float = 20.00
    default_minimum_fare_floor: float = 1.00

    # Dividend automation
    dividend_scheduler_enabled: bool = True
    dividend_scheduler_cron: str = "0 1 1 * *"

    @property
    def db_url(self) -> str:
        """
        Sync database URL
        """
        if self.database_url:
            return self.database_url
        return f"mysql+pymysql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_database}"

    @property
    def redis_url(self) -> str:
        """
        Redis connection URL
        """
        if self.redis_username and self.redis_password:
            return f"redis://{self.redis_username}:{self.redis_password}@{self.redis_host}:{self.redis_port}"
        elif self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}"
        else:
            return f"redis://{self.redis_host}:{self.redis_port}"

    @property
    def celery_broker(self) -> str:
        """
        Celery broker URL
        """
        return f"{self.redis_url}/1"

    @property
    def celery_backend(self) -> str:
        """
        Celery backend URL
        """
        return f"{self.redis_url}/2"


settings = Settings()
