from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    agent_name: str = Field(default="tm-agent", description="Agent id used to scope memories and cache keys")

    # Twitter
    twitter_username: str = Field(default="", description="Handle the agent posts as (without @)")
    twitter_access_token: str | None = Field(default=None, description="OAuth2 user access token")
    twitter_api_base: str = Field(default="https://api.twitter.com/2")
    twitter_poll_interval: int = Field(default=120, description="Seconds between mention checks")
    twitter_search_count: int = Field(default=20)
    twitter_target_users: str = Field(default="", description="Comma-separated handles to watch")
    target_user_fetch_count: int = Field(default=3)
    target_recency_hours: float = Field(default=2.0)
    twitter_dry_run: bool = Field(default=False, description="Log replies/posts instead of sending")
    max_thread_depth: int = Field(default=10)

    # Posting / actions
    post_interval_min: int = Field(default=90, description="Minutes")
    post_interval_max: int = Field(default=180, description="Minutes")
    post_immediately: bool = Field(default=False)
    enable_action_processing: bool = Field(default=True)
    action_interval: int = Field(default=300, description="Seconds between timeline action cycles")
    action_timeline_count: int = Field(default=15)

    # AI
    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    fast_model: str = Field(default="gpt-4o-mini", description="Fast/cheap model for decisions")
    strong_model: str = Field(default="gpt-4o", description="Strong model for replies and SQL")
    generation_timeout: float = Field(default=90.0, description="Seconds per LLM call, 0 disables")

    # Tavily (web search)
    tavily_api_key: str | None = Field(default=None, description="Tavily API key for web search")
    web_search_max_results: int = Field(default=5)
    web_search_depth: str = Field(default="advanced", description="'basic' or 'advanced'")

    # PostgreSQL (memories, idempotency records, cache)
    postgres_url: str = Field(
        default="postgresql://localhost:5432/tmagent",
        description="PostgreSQL connection URL",
        validation_alias=AliasChoices("postgres_url", "database_url"),
    )

    # Warehouse
    warehouse_dsn: str = Field(default="postgresql://localhost:5432/warehouse")
    warehouse_table: str = Field(default="CRYPTO_INFO_HUB_CURRENT_VIEW")
    warehouse_pool_min: int = Field(default=0)
    warehouse_pool_max: int = Field(default=5)
    warehouse_acquire_timeout: float = Field(default=30.0)
    query_max_rows: int = Field(default=10)
    query_synthesis_mode: str = Field(default="rules", description="'rules' or 'llm'")

    # Rate limit + cache
    rate_limit_count: int = Field(default=60)
    rate_limit_window: float = Field(default=60.0, description="Seconds")
    cache_ttl: float = Field(default=300.0, description="Seconds")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8003)

    @property
    def target_users(self) -> list[str]:
        return [u.strip().lstrip("@") for u in self.twitter_target_users.split(",") if u.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
