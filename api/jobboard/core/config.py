from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "jobboard-api"
    environment: str = "dev"
    log_level: str = "INFO"
    storage_backend: Literal["postgres", "memory"] = "postgres"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    identity_provider: Literal["supabase", "trusted_header"] = "supabase"
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    auth_timeout_seconds: float = 5.0
    auto_provision_users: bool = True
    default_page_size: int = 10
    max_page_size: int = 100
    application_transition_policy: Literal["free", "strict"] = "free"
    salary_open_ended_policy: Literal["exclude", "include"] = "exclude"
    fallback_jobs_path: str | None = None
    fallback_jobs_json: str | None = None
    otel_enabled: bool = True
    otel_service_name: str = "jobboard-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="JB_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
