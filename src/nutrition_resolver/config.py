"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    admin_token: str
    fdc_api_key: str = "DEMO_KEY"
    fdc_base_url: str = "https://api.nal.usda.gov/fdc/v1"
    openfoodfacts_base_url: str = "https://world.openfoodfacts.org"
    edamam_app_id: str | None = None
    edamam_app_key: str | None = None
    edamam_base_url: str = "https://api.edamam.com"
    openai_api_key: str | None = None
    openai_model: str = "gpt-5.2"
    openai_store: bool = False
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    adapter_timeout_seconds: float = 5.0
    request_timeout_seconds: float = 8.0
    acceptance_threshold: float = 0.5
    profile_cache_ttl_seconds: int = 60 * 60 * 24
    discovery_max_attempts: int = 3
    discovery_backoff_seconds: float = 30.0
    discovery_workers: int = 1
    discovery_poll_seconds: float = 5.0
    discovery_lease_seconds: float = 300.0
    debug: bool = False
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def edamam_enabled(self) -> bool:
        return bool(self.edamam_app_id and self.edamam_app_key)

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_key)
