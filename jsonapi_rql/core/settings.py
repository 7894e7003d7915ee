from __future__ import annotations

import json
from typing import Annotated, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the JSON:API service.

    This is separate from jsonapi_rql.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="JSON:API Service")
    APP_DESCRIPTION: str = Field(
        default=(
            "JSON:API resources backed by SQLAlchemy models. "
            "Collections accept RQL filter expressions."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")
    API_PREFIX: str = Field(default="", description="Prefix for every resource route, e.g. /api/v1")

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=False)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # JSON:API behaviour
    JSONAPI_PAGE_SIZE: int = Field(default=10, ge=1, description="Default page[size]")
    JSONAPI_MAX_PAGE_SIZE: int = Field(default=100, ge=1, description="Upper bound for page[size]")
    JSONAPI_EXTRA_HEADERS: Annotated[Dict[str, str], NoDecode] = Field(
        default_factory=dict,
        description="Headers added to every JSON:API response (JSON object or k=v,k2=v2).",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO")

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            if v.strip().startswith("["):
                return json.loads(v) or ["*"]
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]

    @field_validator("JSONAPI_EXTRA_HEADERS", mode="before")
    @classmethod
    def _parse_extra_headers(cls, v):
        """Accept a JSON object or a comma-separated list of name=value pairs."""
        if v is None or v == "":
            return {}
        if isinstance(v, str):
            text = v.strip()
            if text.startswith("{"):
                return json.loads(text)
            headers = {}
            for part in text.split(","):
                name, sep, value = part.partition("=")
                if sep and name.strip():
                    headers[name.strip()] = value.strip()
            return headers
        return v


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    Note:
      For simplicity we construct a new instance each time. If caching is desired,
      we can add a module-level cache or lru_cache.
    """
    return AppSettings()
