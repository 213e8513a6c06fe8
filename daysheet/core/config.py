from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    DATABASE_URL: str = "postgresql+asyncpg://daysheet:daysheet_secret@db:5432/daysheet"
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Used when the employee has no assigned shift / time zone
    SHIFT_START_TIME: str = "09:00"
    ATTENDANCE_TIMEZONE: str = "UTC"
    ROLLING_WINDOW_DAYS: int = 30

    EMPLOYEE_MATCH_THRESHOLD: int = 90

    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    LOG_LEVEL: str = "INFO"
    RUN_MIGRATIONS: bool = True


settings = Settings()
