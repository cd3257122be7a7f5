from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    DATABASE_URL: str = Field("sqlite:///data/memos.db", description="SQLAlchemy database URL")
    ECHO_SQL: bool = Field(False, description="Echo emitted SQL to the log")
    LOG_LEVEL: str = Field("INFO", description="Root log level")
    SHORT_ID_MAX_ATTEMPTS: int = Field(
        1000,
        ge=1,
        description="Upper bound on short ID candidates tried for a single create"
    )
    DEFAULT_VISIBILITY: str = Field(
        "PRIVATE",
        description="Visibility applied when a memo is created without one"
    )

# Singleton instance
settings = Settings()
