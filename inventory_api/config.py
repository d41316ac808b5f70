from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration sourced from environment variables."""

    model_config = SettingsConfigDict(env_file=(".env",), env_file_encoding="utf-8", extra="ignore")

    app_env: Literal["development", "production", "test"] = "development"
    log_level: str = "INFO"
    log_json: bool = False
    log_file: str | None = None
    host: str = "0.0.0.0"
    port: int = Field(default=8080, alias="PORT")
    # Kubernetes API access. The service credential is used for
    # SubjectAccessReviews; callers' own tokens are used for SelfSubjectReviews.
    kube_api_host: str | None = Field(default=None, description="Override the API server URL")
    kube_context: str | None = None
    kube_config_path: str | None = Field(default=None, alias="KUBE_CONFIG_PATH")
    service_account_token_path: str | None = None
    kube_ca_file: str | None = Field(
        default="/var/run/secrets/kubernetes.io/serviceaccount/ca.crt",
        description="CA bundle used when calling the API server with a caller token",
    )
    request_timeout_seconds: float = Field(default=10.0, description="Transport timeout for review calls")
    # Paging
    default_page_size: int = Field(default=6, ge=0)
    # Optional inventory polling. Disabled by default.
    inventory_refresh_enabled: bool = Field(default=False, description="Poll the control plane for inventory")
    inventory_refresh_seconds: int = Field(default=30, gt=0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]
