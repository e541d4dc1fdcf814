from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration sourced from environment variables."""

    model_config = SettingsConfigDict(env_file=(".env",), env_file_encoding="utf-8", extra="ignore")

    app_name: str = "tenant-rbac"
    app_version: str = "1.0.0"
    app_env: Literal["development", "production", "test"] = "development"
    host: str = "0.0.0.0"
    port: int = Field(default=8000, alias="APP_PORT")
    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    log_file: str | None = None
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_date_format: str = "%Y-%m-%d %H:%M:%S"
    allowed_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    # Cluster access, only used by the applier
    kube_context: str | None = None
    kube_config_path: str | None = Field(default=None, alias="KUBE_CONFIG_PATH")
    service_account_token_path: str | None = None
    apply_enabled: bool = Field(default=False, description="Allow the API and CLI to write objects to a cluster")
    field_manager: str = Field(default="tenant-rbac", description="fieldManager sent with create/replace calls")
    # Labels stamped on every generated object
    managed_by: str = Field(default="tenant-rbac", description="Value of app.kubernetes.io/managed-by")
    label_prefix: str = Field(default="tenant-rbac.io", description="Prefix for the tenant label key")

    @computed_field
    @property
    def is_debug(self) -> bool:
        return self.app_env == "development"

    @property
    def tenant_label(self) -> str:
        return f"{self.label_prefix}/tenant"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]
