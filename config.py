import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")
    # keys the digest of stored one-time codes; falls back to SECRET_KEY
    OTP_HASH_KEY = os.getenv("OTP_HASH_KEY")

    # SQLite database file stored next to the app as otpgate.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "otpgate.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    # One-time codes (signup / password reset)
    OTP_LENGTH = int(os.getenv("OTP_LENGTH", "6"))
    OTP_TTL_SECONDS = int(os.getenv("OTP_TTL_SECONDS", "600"))  # 10 minutes
    OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))

    # Issuance ceilings, counted per email across all purposes
    OTP_COOLDOWN_SECONDS = int(os.getenv("OTP_COOLDOWN_SECONDS", "60"))
    OTP_HOURLY_LIMIT = int(os.getenv("OTP_HOURLY_LIMIT", "3"))
    OTP_DAILY_LIMIT = int(os.getenv("OTP_DAILY_LIMIT", "10"))

    # Records older than this are unusable and may be purged
    OTP_RETENTION_HOURS = int(os.getenv("OTP_RETENTION_HOURS", "24"))

    OTP_STORE = os.getenv("OTP_STORE", "sql")          # sql | memory
    OTP_NOTIFIER = os.getenv("OTP_NOTIFIER", "smtp")   # smtp | console

    # Password policy for accounts created / reset through a code
    PASSWORD_MIN_LEN = int(os.getenv("PASSWORD_MIN_LEN", "8"))
    PASSWORD_MAX_LEN = 128

    # Basic app settings
    DEBUG = False
