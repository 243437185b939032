from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    database_url: str = "sqlite:///./rentline.db"
    app_version: str = "2026-10-19.v1"
    log_level: str = "INFO"
    sql_log_level: str = "WARNING"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Auth (Supabase-issued access tokens) ----
    auth_mode: str = "dev"  # dev|jwt
    supabase_jwt_secret: str = "dev-change-me"
    supabase_jwt_audience: str = "authenticated"
    dev_auto_provision: bool = True

    # Dev header names
    dev_header_user_id: str = "X-User-Id"
    dev_header_user_email: str = "X-User-Email"

    # ---- Plans / billing ----
    default_plan_code: str = "free"

    # ---- Timeline ----
    upcoming_default_days: int = 30  # notification bell
    dashboard_horizon_days: int = 90  # dashboard widget
    list_page_size: int = 12
    dashboard_cache_ttl_seconds: int = 300
    # zone for day math when a client sends no ?tz=
    default_timezone: str = "UTC"

    # ---- Bundled HTTP client (rentline.clients) ----
    api_base_url: str = "http://localhost:8000/api"
    api_timeout_seconds: float = 20.0

    # Reopening a completed check item wipes completed_by/completed_at
    clear_completion_on_reopen: bool = True

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if is_prod:
            if (self.auth_mode or "").strip().lower() == "dev":
                raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")
            if self.supabase_jwt_secret == "dev-change-me":
                raise ValueError("SECURITY: supabase_jwt_secret must be set in prod")

            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
