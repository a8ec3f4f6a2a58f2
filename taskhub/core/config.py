"""Configuration management for taskhub."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage Configuration
    storage_path: str = Field(default="./data/taskhub.db", description="SQLite file backing the key-value store")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Environment tag reported to Logfire")

    # Task Retention
    retention_days: int = Field(default=7, description="Days a completed task is kept before the retention sweep")
    index_expiration_days: int = Field(
        default=30, description="Days after completion until a search index entry expires"
    )

    # Badge Configuration
    badge_enabled: bool = Field(default=True, description="Whether the app icon badge is maintained")
    badge_debounce_seconds: float = Field(default=0.5, description="Debounce window for badge updates")
    badge_cache_ttl_seconds: float = Field(default=30.0, description="Validity of the cached badge count")
    badge_retry_delay_seconds: float = Field(default=1.0, description="Delay before retrying a failed badge write")

    # Category Cache
    category_cache_ttl_seconds: float = Field(default=5.0, description="Validity of a cached category entry")

    # Maintenance
    maintenance_interval_minutes: int = Field(default=60, description="Interval of the maintenance job")

    # Reminders
    reminder_title: str = Field(default="Task Reminder", description="Title of scheduled reminder notifications")


# Application Constants
class Constants:
    """Application-wide constants."""

    # Search Index
    SEARCH_DOMAIN: str = "taskhub.tasks"
    SEARCH_ID_PREFIX: str = "task_"

    # Ranking hints per relevance level (highest first)
    RANKING_OVERDUE: float = 1.0
    RANKING_DUE_TODAY: float = 0.9
    RANKING_PENDING: float = 0.7
    RANKING_DEFAULT: float = 0.5
    RANKING_COMPLETED: float = 0.3

    # Storage keys (profile scoped keys get a "_<profile>" suffix)
    TASKS_KEY_PREFIX: str = "SavedTasks"
    CATEGORIES_KEY_PREFIX: str = "SavedCategories"
    FILTER_KEY_PREFIX: str = "SelectedCategoryFilter"
    COLLAPSED_KEY_PREFIX: str = "CollapsedCategories"
    ACTIVE_PROFILE_KEY: str = "CurrentUserProfile"
    PROFILE_MIGRATION_KEY: str = "ProfileDataMigrated"

    # Maintenance job
    MAINTENANCE_JOB_ID: str = "maintenance"
    MAINTENANCE_MAX_RETRIES: int = 3

    # Job Tracker Configuration
    TRACKER_DEAD_LETTER_QUEUE_MAXLEN: int = 100


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
