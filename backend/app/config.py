"""
Application configuration using Pydantic settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_name: str = "Twofold"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./data/db.sqlite"

    # Import paths
    import_inbox_path: str = "./data/imports/inbox"
    import_processed_path: str = "./data/imports/processed"
    import_failed_path: str = "./data/imports/failed"

    # Import limits
    max_import_size: int = 1000
    max_batch_size: int = 500

    # Result cache
    cache_ttl_minutes: int = 30

    # Duplicate detection
    duplicate_date_tolerance_days: int = 2
    duplicate_description_similarity: float = 0.8
    duplicate_lookback_days: int = 90
    duplicate_auto_skip_threshold: float = 0.95

    # Category suggestions below this are shown as "no suggestion"
    category_display_threshold: float = 0.3

    # Receipt uploads
    receipts_path: str = "./data/receipts"
    upload_queue_backend: str = "database"  # database, file
    upload_queue_file: str = "./data/offline_queue.json"
    upload_max_retries: int = 3
    upload_max_age_days: int = 7
    upload_auto_process_on_online: bool = True

    # AI Provider
    ai_provider: str = "openrouter"  # openrouter, ollama, openai, anthropic
    ai_model: str = "anthropic/claude-3-haiku"
    ai_base_url: Optional[str] = None  # For Ollama: http://localhost:11434

    # API Keys (optional based on provider)
    openrouter_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    # AI Feature Flags
    ai_auto_categorize: bool = False

    # Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    frontend_url: str = "http://localhost:8081"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )


# Global settings instance
settings = Settings()
