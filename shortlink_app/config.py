from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Application
    app_name: str = "Shortlink"
    app_version: str = "1.0.0"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Database (any SQLAlchemy async driver URL)
    database_url: str = "sqlite+aiosqlite:///./shortlink.db"
    auto_create_tables: bool = True

    # Redirect resolution
    base_url: str = "http://127.0.0.1:8000"
    lookup_timeout_ms: int = 300  # Slug lookup budget before LOOKUP_FAILED

    # Slug generation strategy
    slug_strategy: str = "random"  # Options: "random", "base62"
    slug_length: int = 6
    slug_max_length: int = 6  # Upper bound for base62 codes
    slug_salt: int = 238328  # 62**3, keeps base62 codes at least 4 characters
    max_retries: int = 5

    # Click recording
    click_pipeline: str = "background"  # Options: "background", "queue"
    click_recording_timeout: float = 5.0  # Seconds
    trust_proxy_headers: bool = True
    ip_hash_salt: str = ""
    geo_country_header: str = "cf-ipcountry"
    geo_city_header: str = "cf-ipcity"

    # Password gate / unlock grants
    unlock_ttl: int = 900  # Seconds; 0 disables unlock caching
    unlock_cookie_name: str = "shortlink_unlock"

    # Guest links
    guest_retention_days: int = 7
    guest_link_limit: int = 10  # Per guest session
    guest_limit_window_hours: int = 24

    # Admin trigger (empty = unguarded)
    admin_token: str = ""

    # Cache settings
    cache_backend: str = "memory"  # Options: "redis", "memory", "null"
    redis_url: str = "redis://localhost:6379/0"

    # Queue settings (click_pipeline = "queue")
    queue_backend: str = "redis_streams"  # Options: "redis_streams", "memory"
    queue_name: str = "link_clicks"
    queue_consumer_group: str = "click_workers"
    queue_batch_size: int = 100  # Number of messages to process at once
    queue_block_ms: int = 1000  # Worker blocking read time

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
