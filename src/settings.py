"""Application settings, read once from the environment."""
import os

DATABASE_URL: str = os.getenv("DATABASE_URL", "postgresql://postgres:root@db:5432/sms-forms")

# Auth
SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE: str = os.getenv("LOG_FILE", "./logs/sms_forms.log")
LOG_MAX_BYTES: int = int(os.getenv("LOG_MAX_BYTES", "10485760"))  # 10MB
LOG_BACKUP_COUNT: int = int(os.getenv("LOG_BACKUP_COUNT", "5"))

# Notification outbox
EFFECT_RETRY_INTERVAL_SECONDS: int = int(os.getenv("EFFECT_RETRY_INTERVAL_SECONDS", "60"))
EFFECT_MAX_ATTEMPTS: int = int(os.getenv("EFFECT_MAX_ATTEMPTS", "5"))

# Submission numbering
SEQUENCE_RETRY_LIMIT: int = int(os.getenv("SEQUENCE_RETRY_LIMIT", "5"))

# Seed demo users and a template on startup
SEED_DEMO_DATA: bool = os.getenv("SEED_DEMO_DATA", "true").lower() in ("1", "true", "yes")
