from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BACKEND_TIMEOUT_MS = 20000


class Settings(BaseSettings):
    app_env: str = "dev"
    app_name: str = "Learning Portal"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"
    portal_base_url: str = "http://localhost:3000"
    cors_allow_origins: str = "*"

    # Workflow backend (Apps Script web app)
    apps_script_web_app_url: str = ""
    apps_script_shared_secret: str = ""
    apps_script_timeout_ms: int = DEFAULT_BACKEND_TIMEOUT_MS

    firebase_project_id: str = ""
    firebase_client_email: str = ""
    firebase_private_key: str = ""

    dev_actor_email: str = ""
    dev_actor_role: str = "ADMIN"
    allow_dev_headers: bool = True
    healthcheck_actor_email: str = ""
    transcript_verify_actor_email: str = ""

    chat_store_backend: str = "firestore"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("apps_script_timeout_ms", mode="before")
    @classmethod
    def _fallback_timeout(cls, value):
        try:
            timeout = int(value)
        except (TypeError, ValueError):
            return DEFAULT_BACKEND_TIMEOUT_MS
        return timeout if timeout > 0 else DEFAULT_BACKEND_TIMEOUT_MS

    @field_validator("firebase_private_key", mode="after")
    @classmethod
    def _unescape_private_key(cls, value: str) -> str:
        return value.replace("\\n", "\n") if value else ""

    def missing_backend_config(self) -> list[str]:
        missing = []
        if not self.apps_script_web_app_url:
            missing.append("APPS_SCRIPT_WEB_APP_URL")
        if not self.apps_script_shared_secret:
            missing.append("APPS_SCRIPT_SHARED_SECRET")
        return missing

    def has_backend_config(self) -> bool:
        return not self.missing_backend_config()

    def cors_origins(self) -> list[str]:
        origins = [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]
        return origins or ["*"]


settings = Settings()
