from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    APP_NAME: str = "TTRAC"
    AUTH_MODE: Literal["supabase", "mock"] = "mock"

    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    SUPABASE_SERVICE_KEY: str = ""

    CORS_ORIGINS: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    NOTIFICATION_FETCH_LIMIT: int = 50
    GENERATOR_SCAN_LIMIT: int = 50
    # Rows per request for full-table maintenance scans
    SCAN_PAGE_SIZE: int = 1000
    # Comma-separated keywords added to the built-in dummy-data list
    EXTRA_DUMMY_PATTERNS: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
