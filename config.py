from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Process configuration, read from the environment or a .env file.
    """

    # Loyverse API access
    LOYVERSE_TOKEN: str = Field(default="")
    LOYVERSE_API_BASE: str = Field(default="https://api.loyverse.com/v1.0")
    LOYVERSE_PAGE_LIMIT: int = Field(default=50, ge=1, le=250)
    HTTP_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)

    # dead time between two stock writes during a sync
    SYNC_DELAY_SECONDS: float = Field(default=0.1, ge=0)

    LOG_LEVEL: str = Field(default="INFO")
    CORS_ORIGIN_REGEX: str = Field(default=r".*")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
