import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class Config:
    # Provide a safe development fallback to avoid 500s when SECRET_KEY is missing.
    SECRET_KEY = os.getenv('SECRET_KEY') or 'dev-secret-key-change-me'
    DATABASE_URL = os.getenv('DATABASE_URL')
    SQLALCHEMY_DATABASE_URI = DATABASE_URL or 'sqlite:///braik.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    REMEMBER_COOKIE_SECURE = True
    REMEMBER_COOKIE_HTTPONLY = True

    # Background notification fan-out (RQ)
    REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    NOTIFICATION_QUEUE_ENABLED = _flag('NOTIFICATION_QUEUE_ENABLED')

    # Platform-wide AI kill switch; applies even to fully paid teams
    AI_PLATFORM_DISABLED = _flag('AI_PLATFORM_DISABLED')
    AI_RATE_LIMIT = os.getenv('AI_RATE_LIMIT', '30 per minute')

    # Months (1-12) treated as pre-season grace while no first game week is known
    BILLING_GRACE_MONTHS = tuple(
        int(m) for m in os.getenv('BILLING_GRACE_MONTHS', '6,7').split(',') if m.strip()
    )

    RATELIMIT_ENABLED = _flag('RATELIMIT_ENABLED', 'true')
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
