from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"

    DATABASE_URL: str = "sqlite:///./dailyquiz.db"
    PROJECT_NAME: str = "Daily Quiz Composer"
    LOG_LEVEL: str = "INFO"

    # Frontend / admin console origins
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Composer defaults
    COMPOSER_TARGET_QUESTION_COUNT: int = 6
    COMPOSER_EASY_COUNT: int = 3
    COMPOSER_MEDIUM_COUNT: int = 2
    COMPOSER_HARD_COUNT: int = 1
    COMPOSER_MAX_EXPOSURE_BIAS: int = 10
    COMPOSER_MIN_UNIQUE_THEMES: int = 3
    COMPOSER_MAX_SUBJECT_OVERLAP: int = 2

    # Scheduler
    WARMUP_WINDOW_MINUTES: int = 10

    # Template artifact store
    CDN_BASE_URL: str = "https://cdn.example.com"
    TEMPLATE_PREFIX: str = "quiz"
    TEMP_DIR: str = "/tmp"

    # S3 Bucket
    S3_BUCKET: str = ""
    AWS_ACCESS_KEY: str = ""
    AWS_SECRET_KEY: str = ""
    AWS_REGION: str = "ca-central-1"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
