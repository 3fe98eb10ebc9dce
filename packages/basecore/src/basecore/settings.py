"""
Settings for all care platform services.

Values come from the environment (or a local .env file). Every deployable
reads the same Settings object and uses only the fields it needs.
"""

import functools

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    ENVIRONMENT: str = Field(default="development")
    SERVICE_NAME: str = Field(default="care-platform")

    # Infrastructure
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    DATABASE_URL: str = Field(default="sqlite:///./care_platform.db")

    # Correlated request/response over pub/sub
    RESPONSE_NAMESPACE: str = Field(default="games")
    RESPONSE_TIMEOUT_MS: int = Field(default=5000)

    # Topics
    ENGAGEMENT_TOPIC: str = Field(default="engagement.events")
    GAMIFICATION_TOPIC: str = Field(default="gamification.events")
    NOTIFICATION_TOPIC: str = Field(default="notification/events")

    # Partitioned log
    LOG_PARTITIONS: int = Field(default=4)
    ENGAGEMENT_PARTITIONS: str = Field(default="")  # "0,1" - empty means all
    LOG_MAX_LEN: int = Field(default=100000)
    GAMIFICATION_GROUP: str = Field(default="gamification-group")
    NOTIFICATION_GROUP: str = Field(default="notification-group")

    # Channel adapters (selected once at startup)
    PUSH_ADAPTER: str = Field(default="mock")
    SMS_ADAPTER: str = Field(default="mock")
    DASHBOARD_ADAPTER: str = Field(default="mock")

    FCM_PROJECT_ID: str = Field(default="")
    FCM_ACCESS_TOKEN: str = Field(default="")
    TWILIO_ACCOUNT_SID: str = Field(default="")
    TWILIO_AUTH_TOKEN: str = Field(default="")
    TWILIO_FROM: str = Field(default="")

    # Direct-call bridge
    NOTIFICATION_API_URL: str = Field(default="http://localhost:4002")
    NOTIFICATION_API_PORT: int = Field(default=4002)
    BRIDGE_TIMEOUT_S: float = Field(default=5.0)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="console")

    @property
    def engagement_partitions(self) -> list[int] | None:
        """Partitions owned by this consumer instance (None = all)."""
        raw = self.ENGAGEMENT_PARTITIONS.strip()
        if not raw:
            return None
        return [int(p) for p in raw.split(",") if p.strip()]

    def validate_required(self) -> None:
        """
        Fail fast on configuration a worker cannot run without.

        Raises:
            ConfigurationError: if the broker URL, a topic or a group id is empty,
                or the partition layout is inconsistent
        """
        from messaging_core.errors import ConfigurationError

        required = {
            "REDIS_URL": self.REDIS_URL,
            "ENGAGEMENT_TOPIC": self.ENGAGEMENT_TOPIC,
            "GAMIFICATION_TOPIC": self.GAMIFICATION_TOPIC,
            "NOTIFICATION_TOPIC": self.NOTIFICATION_TOPIC,
            "GAMIFICATION_GROUP": self.GAMIFICATION_GROUP,
            "NOTIFICATION_GROUP": self.NOTIFICATION_GROUP,
        }
        missing = [name for name, value in required.items() if not value or not value.strip()]
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

        if self.LOG_PARTITIONS < 1:
            raise ConfigurationError("LOG_PARTITIONS must be at least 1")

        try:
            owned = self.engagement_partitions or []
        except ValueError as e:
            raise ConfigurationError(f"Invalid ENGAGEMENT_PARTITIONS: {e}") from e
        invalid = [p for p in owned if p < 0 or p >= self.LOG_PARTITIONS]
        if invalid:
            raise ConfigurationError(
                f"ENGAGEMENT_PARTITIONS {invalid} outside 0..{self.LOG_PARTITIONS - 1}"
            )

        if self.RESPONSE_TIMEOUT_MS <= 0:
            raise ConfigurationError("RESPONSE_TIMEOUT_MS must be positive")


@functools.lru_cache()
def get_settings() -> Settings:
    """Get settings (cached)."""
    return Settings()
