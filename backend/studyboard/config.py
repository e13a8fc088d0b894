"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    DATABASE_URL: str
    LOG_LEVEL: str
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    EMAIL_BACKEND: str
    RESEND_API_KEY: str
    RESEND_API_URL: str
    MAIL_FROM: str
    NOTIFY_WINDOW_HOURS: int
    CRON_SECRET: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'studyboard.db'}")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        # "log" writes digests to the application log, "resend" calls the email API
        self.EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "log").lower()
        self.RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
        self.RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
        self.MAIL_FROM = os.getenv("MAIL_FROM", "Study Board <onboarding@resend.dev>")
        self.NOTIFY_WINDOW_HOURS = int(os.getenv("NOTIFY_WINDOW_HOURS", "24"))
        # empty disables the scheduled digest route
        self.CRON_SECRET = os.getenv("CRON_SECRET", "")
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.EMAIL_BACKEND not in ("log", "resend"):
            raise RuntimeError(f"EMAIL_BACKEND must be 'log' or 'resend', got {self.EMAIL_BACKEND!r}")
        if self.NOTIFY_WINDOW_HOURS <= 0:
            raise RuntimeError("NOTIFY_WINDOW_HOURS must be positive")


settings = Settings()
