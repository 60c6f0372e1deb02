from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    PROVIDER: str = "mock"  # "mock" or "http"
    PROVIDER_BASE_URL: str = "https://api.example-hotels.com/v1"
    PROVIDER_API_KEY: str | None = None
    PROVIDER_TIMEOUT_SECONDS: float = 5.0
    DEFAULT_CURRENCY: str = "USD"

    AVAILABILITY_CACHE_TTL_SECONDS: float = Field(default=300.0, gt=0)
    PRICING_CACHE_TTL_SECONDS: float = Field(default=120.0, gt=0)

    RETRY_MAX_RETRIES: int = Field(default=3, ge=0)
    RETRY_INITIAL_DELAY_SECONDS: float = 0.5
    RETRY_MAX_DELAY_SECONDS: float = 5.0
    RETRY_BACKOFF_MULTIPLIER: float = 2.0

    LEDGER_STORE: str = "memory"  # "memory" or "json"
    LEDGER_DATA_DIR: str = "./data/ledger"

    NOTIFICATIONS_ENABLED: bool = True


settings = Settings()
