from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        "env_file": "../.env",
        "extra": "ignore",
        "env_prefix": "",
        "case_sensitive": False,
    }

    # Shopify catalog
    shopify_domain: str = ""
    shopify_api_version: str = "2025-01"
    shopify_admin_api_access_token: str = ""

    # AI APIs
    anthropic_api_key: str = ""
    unsplash_access_key: str = ""

    # Generative classifier (inner loop: per model, per rate limit)
    classifier_models: list[str] = [
        "claude-sonnet-4-5-20250929",
        "claude-haiku-4-5-20251001",
    ]
    classifier_max_attempts: int = 3
    classifier_backoff_base_seconds: float = 10.0
    classifier_temperature: float = 0.3
    classifier_max_tokens: int = 200

    # Enrichment pipeline (outer loop around a whole classification)
    enrich_max_attempts: int = 3
    enrich_retry_delay_seconds: float = 5.0

    # Run
    default_limit: int = 50
    default_batch_size: int = 5
    default_concurrency: int = 2
    progress_file: str = "progress.json"
    http_timeout_seconds: float = 30.0

    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_file: str = ""


settings = Settings()
