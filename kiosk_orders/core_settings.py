from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    SERVICE_NAME: str = "kiosk-orders"
    SERVICE_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    DATABASE_URL: Optional[str] = None
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "kiosk"
    POSTGRES_USER: str = "kiosk"
    POSTGRES_PASSWORD: str = "kiosk"

    REDIS_URL: Optional[str] = None
    ORDER_EVENTS_CHANNEL: str = "orders"

    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    ACCESS_TOKEN_MINUTES: int = 60 * 12

    SUMUP_API_URL: str = "https://api.sumup.com"
    SUMUP_API_KEY: str = ""
    SUMUP_MERCHANT_CODE: str = ""
    SUMUP_RETURN_URL: str = "http://localhost:8000/reader-callback"
    SUMUP_CURRENCY: str = "DKK"
    SUMUP_TIMEOUT_SECONDS: float = 8.0

    class Config:
        env_file = ".env"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def is_deployed(self) -> bool:
        return self.ENVIRONMENT in ("staging", "production")

@lru_cache
def get_settings() -> Settings:
    return Settings()
