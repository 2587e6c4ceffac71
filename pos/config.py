from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ==============================
    # Application
    # ==============================
    APP_NAME: str = "Shop POS"
    ENVIRONMENT: str = "local"

    # ==============================
    # Database
    # ==============================
    DATABASE_URL: str = "sqlite:///./pos.db"

    # ==============================
    # Logging
    # ==============================
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # ==============================
    # Security
    # ==============================
    API_KEYS: Optional[str] = None
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: Optional[str] = None
    JWT_ISSUER: Optional[str] = None
    JWT_REQUIRED: bool = False

    # ==============================
    # Shop & Receipts
    # ==============================
    SHOP_NAME: str = "My Shop"
    SHOP_ADDRESS: str = ""
    SHOP_PHONE: str = ""
    CURRENCY_CODE: str = "MMK"
    RECEIPT_WIDTH: int = 32
    RECEIPT_THANK_YOU: str = "Thank you for your purchase!"
    RECEIPT_FOOTER: str = ""

    # ==============================
    # Sales
    # ==============================
    PAYMENT_METHODS: str = "Cash,Debt"
    DEBT_PAYMENT_METHOD: str = "Debt"

    # ==============================
    # Inventory
    # ==============================
    DEFAULT_MIN_STOCK: int = 10
    DEFAULT_CATEGORY_NAME: str = "General"

    # ==============================
    # Expenses
    # ==============================
    DEFAULT_EXPENSE_CATEGORY_NAME: str = "General"

    # ==============================
    # Data Export / Import
    # ==============================
    EXPORT_DIR: str = "exports"
    IMPORT_BATCH_SIZE: int = 100
    IMPORT_CONFLICT_RESOLUTION: str = "update"
    IMPORT_AUTO: bool = False
    IMPORT_WATCH_DIR: str = "imports"
    IMPORT_POLL_SECONDS: int = 10


@lru_cache
def get_settings() -> Settings:
    """Cached settings loader (once per process)."""
    return Settings()


def get_payment_methods(settings: Optional[Settings] = None) -> list[str]:
    settings = settings or get_settings()
    methods = []
    for value in settings.PAYMENT_METHODS.split(","):
        value = value.strip()
        if value and value not in methods:
            methods.append(value)
    return methods


__all__ = ["Settings", "get_payment_methods", "get_settings"]
