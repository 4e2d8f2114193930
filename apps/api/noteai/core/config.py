from __future__ import annotations

import os
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "NoteAI API"
    environment: str = "dev"
    api_prefix: str = "/v1"

    log_level: str = "INFO"
    log_json: bool = False

    data_backend: str = "sql"
    database_dsn: str = "sqlite:///./noteai.db"
    supabase_url: str = ""
    supabase_key: str = ""
    rest_timeout_seconds: int = Field(default=20, ge=1, le=300)

    auth_mode: str = "header"

    llm_provider: str = "openai"
    llm_model: str = "gpt-4o"
    llm_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    llm_label_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    openai_api_key: str = ""

    device_contacts_path: str = "./device_contacts.vcf"
    device_contacts_access_granted: bool = False

    store_backend: str = "none"
    store_api_url: str = "https://api.revenuecat.com/v1"
    store_api_key: str = ""
    store_platform: str = "ios"
    monthly_product_id: str = "com.recursivestudio.ai.noteai.monthly"
    yearly_product_id: str = "com.recursivestudio.ai.noteai.yearly"

    onboarding_batch_size: int = Field(default=5, ge=1, le=100)

    def resolved_openai_api_key(self) -> str:
        return (self.openai_api_key or os.getenv("OPENAI_API_KEY", "")).strip()

    def product_ids(self) -> list[str]:
        return [self.monthly_product_id, self.yearly_product_id]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
