"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ROLE_HIERARCHY: dict[str, list[str]] = {
    "GROUP_SITE_ADMINS": ["ROLE_SITE_ACCESS_ADMIN", "GROUP_ADMINISTER_TABLES"],
    "GROUP_ADMINISTER_TABLES": ["ROLE_ADMINISTER_TABLES", "GROUP_SUPER_USER_TABLES"],
    "GROUP_SUPER_USER_TABLES": ["ROLE_SUPER_USER_TABLES", "GROUP_SYNCHRONIZE_TABLES"],
    "GROUP_SYNCHRONIZE_TABLES": ["ROLE_SYNCHRONIZE_TABLES", "USER_IS_REGISTERED"],
    "GROUP_DATA_COLLECTORS": ["ROLE_DATA_COLLECTOR", "USER_IS_REGISTERED"],
    "GROUP_DATA_VIEWERS": ["ROLE_DATA_VIEWER", "USER_IS_REGISTERED"],
    "USER_IS_REGISTERED": ["ROLE_USER"],
}


class Settings(BaseSettings):
    """Table sync server settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    secret_key: str = "change-me-in-production"
    debug: bool = False
    expose_docs: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///data/db/tablesync.db"

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    trusted_hosts: list[str] = Field(default_factory=list)

    # Protocol
    protocol_version_header: str = "X-OpenDataKit-Version"
    protocol_version: str = "2.0"
    default_fetch_limit: int = Field(default=2000, ge=1)
    max_fetch_limit: int = Field(default=10000, ge=1)
    max_upload_size: int = Field(default=10 * 1024 * 1024, ge=1)

    # Authorization
    admin_username: str = "admin"
    admin_authorities: list[str] = Field(default_factory=lambda: ["GROUP_SITE_ADMINS"])
    role_prefix: str = "ROLE_"
    role_hierarchy: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_ROLE_HIERARCHY.items()}
    )

    def validate_runtime_security(self) -> None:
        """Validate security-critical production settings."""
        if self.debug:
            return

        violations: list[str] = []
        if self.secret_key == "change-me-in-production" or len(self.secret_key) < 32:
            violations.append(
                "SECRET_KEY must be overridden with a high-entropy value (>=32 chars)"
            )
        if not self.trusted_hosts:
            violations.append("TRUSTED_HOSTS must be configured in production")
        if self.default_fetch_limit > self.max_fetch_limit:
            violations.append("DEFAULT_FETCH_LIMIT must not exceed MAX_FETCH_LIMIT")

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Insecure production configuration: {joined}")
