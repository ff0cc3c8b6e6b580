from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    database_url: str = Field(alias="DATABASE_URL")

    auth_secret: str = Field(alias="AUTH_SECRET")
    auth_secret_previous: str | None = Field(default=None, alias="AUTH_SECRET_PREVIOUS")
    auth_algorithm: str = Field(default="HS256", alias="AUTH_ALGORITHM")
    admin_token_expire_minutes: int = Field(default=480, alias="ADMIN_TOKEN_EXPIRE_MINUTES")

    gateway_api_url: str = Field(default="https://api.mercadopago.com", alias="GATEWAY_API_URL")
    gateway_access_token: str | None = Field(default=None, alias="GATEWAY_ACCESS_TOKEN")
    gateway_timeout_seconds: float = Field(default=10.0, alias="GATEWAY_TIMEOUT_SECONDS")
    gateway_notification_url: str | None = Field(default=None, alias="GATEWAY_NOTIFICATION_URL")

    webhook_secret: str | None = Field(default=None, alias="WEBHOOK_SECRET")
    webhook_secrets: str | None = Field(default=None, alias="WEBHOOK_SECRETS")
    webhook_fail_on_error: bool = Field(default=False, alias="WEBHOOK_FAIL_ON_ERROR")

    order_number_prefix: str = Field(default="ELA", alias="ORDER_NUMBER_PREFIX")
    store_name: str = Field(default="Elatho Semijoias", alias="STORE_NAME")

    email_api_url: str = Field(default="https://api.resend.com/emails", alias="EMAIL_API_URL")
    email_api_key: str | None = Field(default=None, alias="EMAIL_API_KEY")
    email_from: str = Field(default="Elatho <pedidos@elatho.com>", alias="EMAIL_FROM")
    admin_email: str | None = Field(default=None, alias="ADMIN_EMAIL")
    telegram_bot_token: str | None = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    telegram_chat_id: str | None = Field(default=None, alias="TELEGRAM_CHAT_ID")
    notification_timeout_seconds: float = Field(default=15.0, alias="NOTIFICATION_TIMEOUT_SECONDS")

    cors_allowed_origins: str | None = Field(default=None, alias="CORS_ALLOWED_ORIGINS")
    checkout_rate_limit_per_minute: int = Field(default=30, alias="CHECKOUT_RATE_LIMIT_PER_MINUTE")

    # Config do pydantic-settings (v2)
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",        # ignora chaves do .env que não tenham campo/alias
        case_sensitive=False,  # tolera caixa; prefira MAIÚSCULO no .env
    )

    @property
    def AUTH_SECRETS_LIST(self) -> list[str]:
        secrets = [self.auth_secret]
        if self.auth_secret_previous and self.auth_secret_previous not in secrets:
            secrets.append(self.auth_secret_previous)
        return secrets

    @property
    def CORS_ORIGINS_LIST(self) -> list[str]:
        raw = (self.cors_allowed_origins or "").strip()
        if not raw:
            return []
        return [item.strip() for item in raw.split(",") if item.strip()]

    @property
    def WEBHOOK_SECRETS_LIST(self) -> list[str]:
        secrets: list[str] = []
        if self.webhook_secret:
            secrets.append(self.webhook_secret)
        if self.webhook_secrets:
            secrets.extend([s.strip() for s in self.webhook_secrets.split(",") if s.strip()])
        unique: list[str] = []
        for secret in secrets:
            if secret not in unique:
                unique.append(secret)
        return unique

    @field_validator("auth_secret")
    @classmethod
    def validate_auth_secret(cls, value: str) -> str:
        if not value or value == "change-me" or len(value) < 32:
            raise ValueError("AUTH_SECRET must be set and at least 32 chars long")
        return value

    @field_validator("webhook_secret")
    @classmethod
    def validate_webhook_secret(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if len(value) < 16:
            raise ValueError("WEBHOOK_SECRET must be at least 16 chars long")
        return value

    @field_validator("webhook_secrets")
    @classmethod
    def validate_webhook_secrets(cls, value: str | None) -> str | None:
        if value is None:
            return value
        secrets = [s.strip() for s in value.split(",") if s.strip()]
        for secret in secrets:
            if len(secret) < 16:
                raise ValueError("WEBHOOK_SECRETS entries must be at least 16 chars long")
        return value

    @field_validator("order_number_prefix")
    @classmethod
    def validate_order_number_prefix(cls, value: str) -> str:
        cleaned = (value or "").strip().upper()
        if not cleaned or not cleaned.isalnum():
            raise ValueError("ORDER_NUMBER_PREFIX must be alphanumeric")
        return cleaned


settings = Settings()

engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


class Base(DeclarativeBase):
    pass


# Dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
