from functools import lru_cache
from typing import Literal, Optional

import httpx
from fastapi import Request
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = Field("local", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    api_title: str = Field("ResearchOS Gateway", alias="API_TITLE")
    api_version: str = Field("0.1.0", alias="API_VERSION")
    api_docs: str = Field("/docs", alias="API_DOCS")
    cors_origins: str = Field("*", alias="CORS_ORIGINS")
    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(8000, alias="PORT")

    # backend access
    backend_mode: Literal["cli", "http"] = Field("cli", alias="BACKEND_MODE")
    dfx_binary: str = Field("dfx", alias="DFX_BINARY")
    backend_network: Optional[str] = Field(None, alias="BACKEND_NETWORK")
    backend_url: Optional[str] = Field(None, alias="BACKEND_URL")
    canister_name: str = Field("research_ai_simple_backend", alias="CANISTER_NAME")
    query_method: str = Field("get_latest_news", alias="QUERY_METHOD")
    health_method: str = Field("health_check", alias="HEALTH_METHOD")
    query_timeout_secs: float = Field(20.0, alias="QUERY_TIMEOUT_SECS")
    health_timeout_secs: float = Field(5.0, alias="HEALTH_TIMEOUT_SECS")
    backend_max_inflight: int = Field(8, alias="BACKEND_MAX_INFLIGHT")
    default_topic: str = Field("general research", alias="DEFAULT_TOPIC")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("query_timeout_secs", "health_timeout_secs")
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be greater than zero")
        return v

    @field_validator("backend_max_inflight")
    @classmethod
    def at_least_one_slot(cls, v: int) -> int:
        if v < 1:
            raise ValueError("BACKEND_MAX_INFLIGHT must be at least 1")
        return v

    @model_validator(mode="after")
    def http_mode_needs_url(self) -> "Settings":
        if self.backend_mode != "http":
            return self
        if not self.backend_url:
            raise ValueError("BACKEND_URL is required when BACKEND_MODE=http")
        try:
            url = httpx.URL(self.backend_url)
        except httpx.InvalidURL as e:
            raise ValueError(f"BACKEND_URL is not a valid URL: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"BACKEND_URL must be an absolute http(s) URL, got {self.backend_url!r}")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def get_gateway(request: Request):
    """QueryGateway built at startup (see main.lifespan)."""
    return request.app.state.gateway


def get_health_monitor(request: Request):
    return request.app.state.health_monitor
