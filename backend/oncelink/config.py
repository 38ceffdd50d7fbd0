from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Database
    database_url: str = "sqlite:///./secrets.db"

    # Rate Limiting
    max_requests: int = 10
    time_window: int = 60  # seconds
    trust_forwarded_for: bool = False

    # Retention and limits
    data_storage_time: int = 60 * 60 * 24  # 24 hours
    max_payload: int = 10_000  # bytes of ciphertext

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    # CORS
    cors_origins: list[str] | str = ["http://localhost:5173", "http://127.0.0.1:5173"]

    @field_validator("max_requests", "time_window", "data_storage_time", "max_payload")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return v

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v


settings = Settings()


def get_settings() -> Settings:
    """Dependency for FastAPI endpoints to get the active settings."""
    return settings
