"""
TLS Enforcement Milter Configuration

Manages all configuration settings with environment variable support.
The admin API token is generated when unset and never logged.
"""

import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from policy_engine.decision import FilterOptions
from policy_store.loader import MAP_TYPES, split_map_spec


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "TLS Enforcement Milter"
    app_version: str = "1.0.0"
    debug: bool = False

    # Milter
    milter_name: str = "tls-enforce-milter"
    milter_socket: str = "inet:8891@127.0.0.1"
    milter_timeout: int = 600

    # Policy
    policy_map: str = "texthash:/etc/postfix/tls_policy"
    strict_mode: bool = True
    unified_mode: bool = False
    track_x_tls_header: bool = True
    info_url: str = "https://example.org/enforced-tls"

    # Admin API
    api_enabled: bool = False
    api_host: str = "127.0.0.1"
    api_port: int = 8892
    api_token: str = Field(default_factory=lambda: secrets.token_urlsafe(32))

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_file: Optional[Path] = None

    @field_validator("policy_map")
    @classmethod
    def validate_policy_map(cls, v: str) -> str:
        """Ensure the map specifier names a supported table type."""
        map_type, path = split_map_spec(v)
        if map_type not in MAP_TYPES:
            raise ValueError(
                f"Unsupported policy map type {map_type!r}, "
                f"expected one of {sorted(MAP_TYPES)}"
            )
        if not path:
            raise ValueError("Policy map path must not be empty")
        return v

    @field_validator("api_host")
    @classmethod
    def validate_localhost_only(cls, v: str) -> str:
        """Ensure the admin API only binds to localhost."""
        if v not in ("127.0.0.1", "localhost", "::1"):
            raise ValueError("Admin API must bind to localhost only for security")
        return v

    @property
    def filter_options(self) -> FilterOptions:
        """Decision options handed to the filter core."""
        return FilterOptions(
            strict=self.strict_mode,
            unified=self.unified_mode,
            track_x_tls_header=self.track_x_tls_header,
            info_url=self.info_url,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
