from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_title: str = "Gear Locker - Equipment Checkout"
    database_url: str = "sqlite:///./gearlocker.db"

    # OUT checkouts due within this many days are reported as "due soon"
    due_soon_days: int = 2

    log_level: str = "INFO"
    log_file: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
