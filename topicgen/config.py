import logging
from functools import lru_cache
from typing import List, Literal

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "TopicGen"
    debug: bool = False
    log_level: str = "INFO"

    # Storage
    database_url: str = "sqlite:///slack_messages.db"
    documents_path: str = Field(default="db_docs", min_length=1)

    # Slack
    slack_user_token: str = ""
    slack_channels: str = ""  # Comma separated channel IDs
    slack_workspace_domain: str = ""  # e.g. "myworkspace" for permalinks

    # LLM (via gen_ai_hub proxy, or "mock" for offline runs)
    llm_provider: Literal["gen-ai-hub", "mock"] = "gen-ai-hub"
    llm_model: str = "gpt-4o"
    temperature: float = 0.0

    # Retry policy for LLM calls (seconds)
    ai_max_retries: int = Field(default=3, ge=1)
    ai_retry_delay: float = Field(default=10.0, ge=0)
    ai_backoff_multiplier: float = Field(default=1.5, ge=1)
    ai_max_retry_delay: float = Field(default=60.0, ge=0)

    # Crawler throttling (seconds)
    crawl_batch_delay: float = Field(default=0.5, ge=0)
    crawl_thread_delay: float = Field(default=0.3, ge=0)
    crawl_user_delay: float = Field(default=0.1, ge=0)

    model_config = ConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def channel_ids(self) -> List[str]:
        """Configured channel IDs, in declaration order."""
        return [c.strip() for c in self.slack_channels.split(",") if c.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings) -> None:
    """Configure root logging once for CLI and server entry points."""
    level = logging.DEBUG if settings.debug else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("topicgen").setLevel(level)
