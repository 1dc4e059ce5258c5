from typing import List, Optional
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "local"
    log_level: str = "INFO"

    postgres_user: str = "cutflow"
    postgres_password: str = ""
    postgres_db: str = "cutflow"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"
    DATABASE_URL: Optional[str] = None

    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    RAZORPAY_KEY_ID: Optional[str] = None
    RAZORPAY_KEY_SECRET: Optional[str] = None
    RAZORPAY_WEBHOOK_SECRET: Optional[str] = None

    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None

    # base64 of exactly 32 bytes
    TOKEN_ENCRYPTION_KEY: Optional[str] = None

    YOUTUBE_CLIENT_ID: Optional[str] = None
    YOUTUBE_CLIENT_SECRET: Optional[str] = None
    YOUTUBE_REDIRECT_URI: Optional[str] = None

    BREVO_API_KEY: Optional[str] = None
    MAIL_FROM: str = "no-reply@cutflow.com"
    PLATFORM_NAME: str = "Cutflow"

    frontend_url: str = "http://localhost:3000"
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    platform_fee_percent: float = 10.0

    # run deposit and order timeouts inside the API process; 0 disables
    maintenance_interval_seconds: int = 0

    @property
    def database_url(self):
        if self.DATABASE_URL:
            return self.DATABASE_URL

        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def razorpay_webhook_secret(self) -> Optional[str]:
        return self.RAZORPAY_WEBHOOK_SECRET or self.RAZORPAY_KEY_SECRET

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"


settings = Settings()
