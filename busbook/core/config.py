import os
from typing import List
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings read from the environment"""

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Database
    DB_DSN: str = os.getenv("DB_DSN", "sqlite+aiosqlite:///./busbook.db")
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "5"))
    DB_ECHO: bool = os.getenv("DB_ECHO", "false").lower() == "true"

    # Security
    SECRET_KEY: str = os.getenv("SECRET_KEY", "")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_SECONDS: int = int(os.getenv("JWT_ACCESS_TTL", "900"))  # 15 minutes
    REFRESH_TOKEN_EXPIRE_SECONDS: int = int(os.getenv("JWT_REFRESH_TTL", str(60 * 60 * 24 * 30)))  # 30 days

    # CORS
    CORS_ALLOW_ORIGINS: List[str] = []
    CORS_ALLOW_CREDENTIALS: bool = True

    # Seat locking
    LOCK_BACKEND: str = os.getenv("LOCK_BACKEND", "redis")
    REDIS_DSN: str = os.getenv("REDIS_DSN", "redis://redis:6379/0")
    LOCK_TTL: int = int(os.getenv("LOCK_TTL", "30"))
    LOCK_TIMEOUT: float = float(os.getenv("LOCK_TIMEOUT", "5.0"))
    LOCK_RETRY_DELAY: float = float(os.getenv("LOCK_RETRY_DELAY", "0.1"))

    # Email (Resend HTTP API)
    RESEND_API_KEY: str = os.getenv("RESEND_API_KEY", "")
    RESEND_API_URL: str = os.getenv("RESEND_API_URL", "https://api.resend.com")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "BusBook <onboarding@resend.dev>")
    EMAIL_TIMEOUT: float = float(os.getenv("EMAIL_TIMEOUT", "10.0"))

    # Rate limiting
    RATE_LIMIT_DEFAULT: str = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")
    RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

    # Business rules
    CURRENCY: str = os.getenv("CURRENCY", "NPR")
    TIMEZONE: str = os.getenv("TIMEZONE", "Asia/Kathmandu")
    DEFAULT_PHONE_REGION: str = os.getenv("DEFAULT_PHONE_REGION", "NP")
    SEED_DEFAULT_TRIPS: bool = os.getenv("SEED_DEFAULT_TRIPS", "false").lower() == "true"

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def __init__(self):
        self._validate()
        self._parse_cors_origins()

    def _validate(self):
        """Validate required settings"""
        if not self.SECRET_KEY:
            if self.ENVIRONMENT != "development":
                raise ValueError("SECRET_KEY environment variable must be set")
            self.SECRET_KEY = "insecure-dev-key-do-not-use-in-production"
        if not self.DB_DSN:
            raise ValueError("DB_DSN environment variable must be set")
        if self.LOCK_BACKEND not in ("redis", "local"):
            raise ValueError("LOCK_BACKEND must be 'redis' or 'local'")

    def _parse_cors_origins(self):
        """Parse CORS origins from environment"""
        raw_origins = os.getenv("CORS_ALLOW_ORIGINS", "*")

        if raw_origins.strip() == "*":
            self.CORS_ALLOW_ORIGINS = ["*"]
            self.CORS_ALLOW_CREDENTIALS = False  # wildcard forbids credentials
        else:
            self.CORS_ALLOW_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]
            self.CORS_ALLOW_CREDENTIALS = True

    @property
    def is_sqlite(self) -> bool:
        return self.DB_DSN.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
