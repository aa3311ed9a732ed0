"""Runtime configuration for the exam room server and candidate client."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings read from the environment (prefix ``EXAMROOM_``) or ``.env``."""

    # Server
    APP_NAME: str = "Proctored Exam Rooms"
    DATABASE_URL: str = "sqlite:///./examroom.db"
    SESSION_SECRET: str = "CHANGE_ME_TO_A_RANDOM_SECRET"
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = "admin123"
    LOG_LEVEL: str = "INFO"

    # Authored date/time strings are interpreted in this zone
    EXAM_TIMEZONE: str = "Asia/Kolkata"
    GRACE_PERIOD_MINUTES: int = 10
    # Any non-empty subjective answer earns marks_per_correct when enabled
    CREDIT_SUBJECTIVE_ATTEMPTS: bool = True

    # Candidate client
    API_BASE_URL: str = "http://localhost:8080/api"
    REQUEST_TIMEOUT_SECONDS: float = 15.0
    SUBMIT_MAX_ATTEMPTS: int = 3
    SUBMIT_RETRY_DELAY_SECONDS: float = 2.0
    VIOLATION_LIMIT: int = 3
    RETURN_COUNTDOWN_SECONDS: int = 5

    class Config:
        env_prefix = "EXAMROOM_"
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
