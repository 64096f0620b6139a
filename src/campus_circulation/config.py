"""Configuration management for the Campus Library circulation server.

Settings are read from ``CAMPUS_LIBRARY_*`` environment variables (or a
``.env`` file) and validated with Pydantic v2:

1. Server metadata - name and version reported by both surfaces
2. Transport - REST over HTTP, or MCP over stdio
3. Security - token signing secret and admin registration code
4. Persistence - SQLite database location
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseSettings):
    """Runtime configuration for the circulation server."""

    model_config = SettingsConfigDict(
        env_prefix="CAMPUS_LIBRARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Server Metadata ===

    server_name: str = Field(
        default="campus-library",
        description="Server name reported by the REST and MCP surfaces",
        pattern=r"^[a-z0-9-]+$",
    )

    server_version: str = Field(
        default="0.1.0",
        description="Server version",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/library.db"),
        description="SQLite database file path",
    )

    # === Transport Configuration ===

    transport: str = Field(
        default="http",
        description="REST API over HTTP, or MCP tools over stdio",
        pattern=r"^(http|stdio)$",
    )

    http_host: str = Field(
        default="127.0.0.1",
        description="Bind address for the REST API",
    )

    http_port: int = Field(
        default=3000,
        description="Port for the REST API",
        ge=1024,
        le=65535,
    )

    # === Security Configuration ===

    jwt_secret: str = Field(
        default="dev-secret-key-change-in-prod",
        description="HMAC secret used to sign session tokens",
        min_length=8,
        repr=False,
    )

    token_ttl_hours: int = Field(
        default=8,
        description="Lifetime of an issued session token",
        ge=1,
        le=24 * 30,
    )

    admin_registration_code: str = Field(
        default="ADMIN123",
        description="Code required to self-register with the admin role",
        repr=False,
    )

    cookie_secure: bool = Field(
        default=False,
        description="Mark the session cookie Secure (HTTPS only)",
    )

    # === Development Configuration ===

    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Resolve the database path and make sure its directory exists."""
        abs_path = v.absolute()
        abs_path.parent.mkdir(parents=True, exist_ok=True)

        if not abs_path.parent.is_dir():
            raise ValueError(f"Database directory {abs_path.parent} is not accessible")

        return abs_path

    @field_validator("server_name")
    @classmethod
    def validate_server_name(cls, v: str) -> str:
        if len(v) < 3:
            raise ValueError("Server name must be at least 3 characters")
        if len(v) > 50:
            raise ValueError("Server name must not exceed 50 characters")
        return v

    @property
    def is_development(self) -> bool:
        """Development mode enables verbose logging."""
        return self.debug or self.log_level == "DEBUG"

    @property
    def server_info(self) -> dict[str, str]:
        return {
            "name": self.server_name,
            "version": self.server_version,
            "transport": self.transport,
        }

    def get_database_url(self) -> str:
        """Get the SQLAlchemy database URL."""
        return f"sqlite:///{self.database_path}"


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Get or create the global configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = ServerConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def set_config(config: ServerConfig) -> None:
    """Install an explicit configuration (used by tests and scripts)."""
    _ConfigStore._instance = config  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration so the next ``get_config()`` re-reads the environment."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
