import os
from datetime import timedelta
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent  # project root (where wsgi.py is)
load_dotenv(BASE_DIR / ".env")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///geovote.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "jwt-dev-secret")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        minutes=int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_MIN", "30"))
    )
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(
        days=int(os.getenv("JWT_REFRESH_TOKEN_EXPIRES_DAYS", "7"))
    )

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Voter e-mail verification
    VERIFICATION_CODE_LENGTH = int(os.getenv("VERIFICATION_CODE_LENGTH", "6"))
    VERIFICATION_CODE_TTL_SECONDS = int(os.getenv("VERIFICATION_CODE_TTL_SECONDS", "600"))  # 10 minutes
    # Returns the raw code in the registration response; development only.
    EXPOSE_VERIFICATION_CODE = _env_bool("EXPOSE_VERIFICATION_CODE", "false")

    DEFAULT_REGION_BUFFER_METERS = float(os.getenv("DEFAULT_REGION_BUFFER_METERS", "20"))

    # Rate limiting: bucket -> "N per M seconds" style string or (limit, window_seconds)
    RATELIMIT_ENABLED = _env_bool("RATELIMIT_ENABLED", "true")
    RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")
    # Number of trusted proxies in front of the app; 0 means use the socket address as-is.
    PROXY_FIX_X_FOR = int(os.getenv("PROXY_FIX_X_FOR", "0"))
    RATE_LIMITS = {
        "auth": os.getenv("RATE_LIMIT_AUTH", "5 per minute"),
        "verify": os.getenv("RATE_LIMIT_VERIFY", "10 per minute"),
        "register": os.getenv("RATE_LIMIT_REGISTER", "3 per minute"),
        "vote": os.getenv("RATE_LIMIT_VOTE", "10 per minute"),
        "api": os.getenv("RATE_LIMIT_API", "60 per minute"),
    }

    # Public election status polling
    STATUS_CACHE_TTL_SECONDS = float(os.getenv("STATUS_CACHE_TTL_SECONDS", "5"))
    # Zero-argument factory for a shared ReadCache backend; None keeps a per-process dict.
    READ_CACHE_BACKEND = None

    # Mail (SMTP)
    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", "true")
    MAIL_USE_SSL = _env_bool("MAIL_USE_SSL", "false")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", MAIL_USERNAME)
    SWAGGER = {"title": "GeoVote API", "uiversion": 3}


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JWT_SECRET_KEY = "jwt-test-secret-key-with-enough-length"
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "noreply@geovote.test"
    EXPOSE_VERIFICATION_CODE = True
    RATE_LIMIT_STORAGE_URI = "memory://"
    RATE_LIMITS = {
        "auth": "5 per minute",
        "verify": "10 per minute",
        "register": "20 per minute",
        "vote": "20 per minute",
        "api": "100 per minute",
    }
