from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Omega Unlock"
    VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # AllDebrid (API key injected by Client or Env)
    ALLDEBRID_API_KEY: Optional[str] = None
    ALLDEBRID_AGENT: str = "hicc-app"
    ALLDEBRID_API_URL: str = "https://api.alldebrid.com/v4"
    ALLDEBRID_API_URL_V41: str = "https://api.alldebrid.com/v4.1"
    HTTP_TIMEOUT_SECONDS: float = 20.0

    # Wait-for-cache loop
    POLL_INTERVAL_SECONDS: float = 3.0
    POLL_MAX_ATTEMPTS: int = 30

    # Legacy fallback fan-out
    LEGACY_UNLOCK_CONCURRENCY: int = 4

    # Search
    APIBAY_API_URL: str = "https://apibay.org"

    class Config:
        env_file = ".env"

settings = Settings()
