"""
Configuration settings for the reply collection pipeline.
Loads environment variables and provides application settings.
"""
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# settings.py is at backend/replyguys/config/settings.py → 4 levels up
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys
    apify_token: str = ""  # Scraping provider (Apify actor runs)
    gemini_api_key: str = ""  # For reply scoring and synthesis via Google Gemini
    x_bearer_token: str = ""  # For publishing the finished report (optional)

    # Scraping provider
    apify_actor_id: str = "kaitoeasyapi~twitter-x-data-tweet-scraper-pay-per-result-cheapest"
    apify_base_url: str = "https://api.apify.com/v2"
    apify_request_timeout: int = 300  # Actor runs synchronously, can take minutes
    x_api_base_url: str = "https://api.twitter.com/2"

    # LLM models (LiteLLM format)
    llm_scoring_model: str = "gemini/gemini-2.0-flash"
    llm_synthesis_model: str = "gemini/gemini-2.5-pro"
    llm_title_model: str = "gemini/gemini-2.0-flash"
    llm_fallback_models: str = ""  # Comma-separated, tried after the primary model

    # Database - use absolute path to avoid working directory issues
    database_url: str = f"sqlite:///{_PROJECT_ROOT}/data/replyguys.db"

    # Celery / Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 2  # Rate limiter + locks
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"
    celery_timezone: str = "UTC"

    # Scraping
    scrape_page_size: int = 100  # Items requested per provider call
    scrape_concurrency: int = 5  # Worker concurrency for the scrape queue
    scrape_cap_multiplier: int = 3  # Stop self-chaining at threshold × multiplier
    scrape_max_retries: int = 3
    monitoring_window_hours: int = 24  # Absolute timeout measured from created_at
    poll_interval_minutes: int = 3  # Supervisor beat interval
    setup_stale_minutes: int = 10  # Re-dispatch setup after this long in setting_up

    # Evaluation
    evaluation_batch_size: int = 10
    evaluation_batches_per_minute: float = 20.0  # Global budget shared by all reports
    evaluation_max_retries: int = 3
    evaluation_stale_minutes: int = 15  # Re-arm replies stuck in pending/evaluating
    rate_limit_timeout_seconds: float = 120.0  # Longest cooperative wait before retrying

    # Synthesis
    synthesis_calls_per_minute: float = 2.0  # Near-serial, separate limiter key
    synthesis_max_retries: int = 3

    # Publication
    publication_enabled: bool = False
    publication_max_mentions: int = 3

    @field_validator(
        "scrape_page_size",
        "scrape_concurrency",
        "scrape_cap_multiplier",
        "monitoring_window_hours",
        "poll_interval_minutes",
        "evaluation_batch_size",
    )
    @classmethod
    def _must_be_positive(cls, v: int, info) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1, got {v}")
        return v

    @field_validator("evaluation_batches_per_minute", "synthesis_calls_per_minute")
    @classmethod
    def _rate_must_be_positive(cls, v: float, info) -> float:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0, got {v}")
        return v

    @property
    def evaluation_min_interval_s(self) -> float:
        """Seconds between scoring batches across all workers."""
        return 60.0 / self.evaluation_batches_per_minute

    @property
    def synthesis_min_interval_s(self) -> float:
        """Seconds between synthesis calls across all workers."""
        return 60.0 / self.synthesis_calls_per_minute

    @property
    def llm_fallback_models_list(self) -> list[str]:
        return [m.strip() for m in self.llm_fallback_models.split(",") if m.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()
