from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "GoFly Travel API"
    LOG_LEVEL: str = "INFO"
    # Comma-separated origins for CORS (e.g. https://gofly.travel,https://admin.gofly.travel). If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""

    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60

    DATABASE_URL: str = "sqlite:///./gofly.db"

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    SITE_URL: str = "http://localhost:3000"  # used in password reset links
    SUPPORT_EMAIL: str = "support@gofly.com"
    DEFAULT_CURRENCY: str = "INR"

    # Seconds a value read from the settings table is reused before re-reading.
    SETTINGS_CACHE_TTL: int = 30

    # Environment fallbacks for the admin-editable settings table.
    SMTP_ENABLED: bool = True
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_EMAIL: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_NAME: str = "GoFly Travel Agency"

    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_SECRET_KEY: str = ""
    RAZORPAY_WEBHOOK_SECRET: str = ""
    RAZORPAY_API_BASE: str = "https://api.razorpay.com/v1"

    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""

    RECAPTCHA_SITE_KEY: str = ""
    RECAPTCHA_SECRET_KEY: str = ""
    RECAPTCHA_MIN_SCORE: float = 0.5

    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.0-flash"

    HTTP_TIMEOUT: int = 20


settings = Settings()
