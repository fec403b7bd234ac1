from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide settings, read from the environment and `.env`.

    Built once at startup and handed to the app factory; business code
    receives it explicitly and never reads the environment itself.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = "sqlite:///data/app.db"
    log_level: str = "INFO"

    access_token_secret: str = "dev-access-secret"
    refresh_token_secret: str = "dev-refresh-secret"
    access_token_expire_minutes: int = 240
    refresh_token_expire_days: int = 7
    cookie_secure: bool = True

    cors_origin: str = "*"
    frontend_url: str = "http://localhost:5173"

    payment_secret: str = "dev-payment-secret"
    stripe_secret_key: str = ""
    stripe_publishable_key: str = ""
    stripe_price_id: str = ""
    subscription_duration_days: int = 30

    reset_token_expire_minutes: int = 15
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    mail_from: str = "BrainXcel <no-reply@brainxcel.local>"
    contact_email: str = "support@brainxcel.local"

    guest_email: str = "guest@brainxcel.local"
    guest_password: str = "guest-password"

    @property
    def cookie_max_age(self) -> int:
        return self.refresh_token_expire_days * 24 * 60 * 60


@lru_cache
def load_settings() -> Settings:
    return Settings()
