"""Application settings using Pydantic Settings"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./inventory.db"

    APP_ENV: str = "dev"
    AUTO_CREATE_TABLES: bool = True

    CSV_MAX_UPLOAD_MB: int = 10
    IMPORT_SAMPLE_SIZE: int = 20
    IMPORT_MATCH_THRESHOLD: float = 0.6
    IMPORT_ROW_TIME_MS: int = 50
    IMPORT_SESSION_TTL_MINUTES: int = 60
    IMPORT_ALLOW_UPDATES: bool = True

    DEFAULT_CATEGORY_NAME: str = "Uncategorized"
    DEFAULT_LOCATION_NAME: str = "General"

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        allowed = ["dev", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of: {allowed}")
        return v

    @field_validator("IMPORT_MATCH_THRESHOLD")
    @classmethod
    def validate_match_threshold(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError("IMPORT_MATCH_THRESHOLD must be in (0, 1]")
        return v

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "prod"

    @property
    def csv_max_upload_bytes(self) -> int:
        return self.CSV_MAX_UPLOAD_MB * 1024 * 1024

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()


def get_settings() -> Settings:
    return settings
