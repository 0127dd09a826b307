from __future__ import annotations

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_env(key: str, default: str) -> str:
    value = os.getenv(key)
    if value is None:
        return default
    return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    supabase_url: str = "http://127.0.0.1:54321"
    supabase_anon_key: str | None = None
    api_timeout_s: float = 5
    requests_table: str = "material_requests"
    projects_table: str = "projects"
    log_level: str = "INFO"
    export_dir: Path = Path(".")

    @property
    def api_base_url(self) -> str:
        return self.supabase_url.rstrip("/")

    @property
    def required_anon_key(self) -> str:
        if not self.supabase_anon_key:
            raise RuntimeError("SUPABASE_ANON_KEY must be set to reach the backend.")
        return self.supabase_anon_key


settings = Settings()
