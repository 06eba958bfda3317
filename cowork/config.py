from decimal import Decimal
from functools import lru_cache
import os
from pydantic import BaseModel, Field


class Settings(BaseModel):
    env: str = Field(default="dev", alias="ENV")
    timezone: str = Field(default="UTC", alias="TIMEZONE")

    database_url: str = Field(default="", alias="DATABASE_URL")
    postgres_db: str = Field(default="cowork", alias="POSTGRES_DB")
    postgres_user: str = Field(default="cowork", alias="POSTGRES_USER")
    postgres_password: str = Field(default="cowork", alias="POSTGRES_PASSWORD")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")

    jwt_secret: str = Field(default="secret", alias="JWT_SECRET")

    payment_provider: str = Field(default="stub", alias="PAYMENT_PROVIDER")
    payment_currency: str = Field(default="USD", alias="PAYMENT_CURRENCY")
    payment_return_url: str = Field(default="http://localhost", alias="PAYMENT_RETURN_URL")
    stripe_secret_key: str = Field(default="", alias="STRIPE_SECRET_KEY")

    notification_webhook_url: str = Field(default="", alias="NOTIFICATION_WEBHOOK_URL")

    nft_workspace_discount_rate: Decimal = Field(
        default=Decimal("0.50"), alias="NFT_WORKSPACE_DISCOUNT_RATE"
    )
    member_cafe_discount_rate: Decimal = Field(
        default=Decimal("0.10"), alias="MEMBER_CAFE_DISCOUNT_RATE"
    )
    card_processing_rate: Decimal = Field(default=Decimal("0.029"), alias="CARD_PROCESSING_RATE")
    fixed_processing_fee: Decimal = Field(default=Decimal("0.30"), alias="FIXED_PROCESSING_FEE")
    discount_overage: bool = Field(default=False, alias="DISCOUNT_OVERAGE")

    default_opening_time: str = Field(default="07:00", alias="DEFAULT_OPENING_TIME")
    default_closing_time: str = Field(default="22:00", alias="DEFAULT_CLOSING_TIME")
    early_check_in_minutes: int = Field(default=15, alias="EARLY_CHECK_IN_MINUTES")
    refund_cutoff_hours: int = Field(default=24, alias="REFUND_CUTOFF_HOURS")

    scheduler_enabled: bool = Field(default=False, alias="SCHEDULER_ENABLED")

    class Config:
        populate_by_name = True

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(**os.environ)
