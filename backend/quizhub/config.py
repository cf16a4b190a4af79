"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    LOG_LEVEL: str
    DB_URL: str
    DEFAULT_PASSING_SCORE: int
    DEFAULT_DURATION_MINUTES: int
    ANALYTICS_DEFAULT_DAYS: int
    ANALYTICS_MAX_DAYS: int
    STRICT_ANSWER_INDEX: bool

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.DB_URL = os.getenv("QUIZHUB_DB_URL", f"sqlite:///{BASE / 'quizhub.db'}")
        self.DEFAULT_PASSING_SCORE = int(os.getenv("DEFAULT_PASSING_SCORE", "60"))
        self.DEFAULT_DURATION_MINUTES = int(os.getenv("DEFAULT_DURATION_MINUTES", "30"))
        self.ANALYTICS_DEFAULT_DAYS = int(os.getenv("ANALYTICS_DEFAULT_DAYS", "30"))
        self.ANALYTICS_MAX_DAYS = int(os.getenv("ANALYTICS_MAX_DAYS", "365"))
        # reject out-of-range correct answer indices when a quiz is saved
        self.STRICT_ANSWER_INDEX = os.getenv("STRICT_ANSWER_INDEX", "false").lower() == "true"
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if not 0 <= self.DEFAULT_PASSING_SCORE <= 100:
            raise RuntimeError("DEFAULT_PASSING_SCORE must be between 0 and 100")
        if self.DEFAULT_DURATION_MINUTES < 1:
            raise RuntimeError("DEFAULT_DURATION_MINUTES must be a positive number of minutes")
        if not 1 <= self.ANALYTICS_DEFAULT_DAYS <= self.ANALYTICS_MAX_DAYS:
            raise RuntimeError("ANALYTICS_DEFAULT_DAYS must be between 1 and ANALYTICS_MAX_DAYS")


settings = Settings()
