from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]

    # SerpAPI key for the google_jobs source
    serpapi_key: str = ""

    # Search defaults and limits
    default_sources: list[str] = ["google_jobs"]
    default_max_results: int = 25
    max_results_limit: int = 100
    default_timeout_ms: int = 90000
    max_timeout_ms: int = 180000  # Hard cap regardless of request
    cancellation_grace_seconds: float = 2.0

    # Scraper retry/backoff
    scraper_max_retries: int = 3
    scraper_backoff_base_seconds: float = 1.0
    scraper_backoff_max_seconds: float = 10.0
    scraper_request_timeout_seconds: float = 30.0
    scraper_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )

    # Redis configuration
    redis_url: str = "redis://localhost:6379"
    search_cache_enabled: bool = True
    search_cache_ttl_seconds: int = 300

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
