"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="CinePoster", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    image_proxy_url: HttpUrl = Field(
        default="https://wsrv.nl/", alias="IMAGE_PROXY_URL"
    )
    default_image_width: int = Field(
        default=600, alias="DEFAULT_IMAGE_WIDTH", ge=16, le=4_000
    )
    default_image_quality: int = Field(
        default=85, alias="DEFAULT_IMAGE_QUALITY", ge=1, le=100
    )

    proxy_stage_timeout: float = Field(
        default=1.5, alias="PROXY_STAGE_TIMEOUT", gt=0, le=60
    )
    scan_probe_timeout: float = Field(
        default=5.0, alias="SCAN_PROBE_TIMEOUT", gt=0, le=120
    )
    scan_concurrency: int = Field(
        default=1, alias="SCAN_CONCURRENCY", ge=1, le=32
    )

    http_timeout: float = Field(default=15.0, alias="HTTP_TIMEOUT", gt=0)
    require_image_content_type: bool = Field(
        default=True, alias="REQUIRE_IMAGE_CONTENT_TYPE"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("image_proxy_url", mode="before")
    @classmethod
    def _strip_proxy_url(cls, value: object) -> object:
        """Allow blank-padded proxy URLs from environment files."""

        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValueError("IMAGE_PROXY_URL must not be empty")
            return stripped
        return value

    @property
    def proxy_base(self) -> str:
        """Return the proxy endpoint as a plain string."""

        return str(self.image_proxy_url)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
