"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Text completion (OpenAI)
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    completion_max_retries: int = 2
    completion_retry_backoff_s: float = 1.0

    # Provider credentials
    exa_api_key: Optional[str] = None
    apify_api_token: Optional[str] = None
    parallel_api_key: Optional[str] = None

    # Provider selection
    search_providers: List[str] = ["parallel_web"]
    metadata_providers: List[str] = ["apify_amazon", "parallel_web"]
    default_metadata_provider: str = "parallel_web"
    use_url_routing: bool = True  # False = fan out to every metadata provider

    # Provider behaviour
    max_search_results: int = 10
    search_timeout_s: float = 60.0
    metadata_timeout_s: float = 600.0  # 0 disables the deadline
    parallel_processor: str = "lite"

    # Discovery
    default_product_count: int = 10
    max_product_count: int = 25
    name_pool_oversample: int = 2
    name_pool_min: int = 20

    # Job processing
    job_retention_s: int = 3600
    job_reap_interval_s: int = 600
    max_concurrent_jobs: int = 0  # 0 = unbounded

    # APNs (products-ready push notifications)
    apns_key_id: str = ""
    apns_team_id: str = ""
    apns_bundle_id: str = ""
    apns_key_base64: str = ""
    apns_environment: str = "sandbox"  # "sandbox" or "production"

    # Runtime
    log_level: str = "INFO"
    environment: str = "development"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
