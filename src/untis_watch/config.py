"""Service configuration loaded from environment variables.

Settings are read once at startup; invalid values fail fast with a pydantic
ValidationError before any background work begins.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from untis_watch.differ import ComparisonPolicy
from untis_watch.provider.client import worst_case_fetch_seconds

DEFAULT_CLIENT_NAME = "untis-watch/0.1.0"


class WatchConfig(BaseSettings):
    """untis-watch configuration loaded from environment variables.

    For local development, create a .env file in the project root.
    """

    # WebUntis settings
    untis_host: str = Field(
        description="WebUntis host, e.g. ikarus.webuntis.com",
    )
    untis_school: str = Field(
        description="WebUntis school identifier (the ?school= query value)",
    )
    untis_user: str = Field(
        default="",
        description="WebUntis username used for the JSON-RPC login",
    )
    untis_password: str = Field(
        default="",
        description="WebUntis password used for the JSON-RPC login",
    )
    client_name: str = Field(
        default=DEFAULT_CLIENT_NAME,
        description="Client identifier sent with the login and as User-Agent",
    )

    # Refresh settings
    refresh_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Seconds between two refresh cycles",
    )
    fetch_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Upper bound for one complete fetch (login, timetable, logout)",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout applied to every single HTTP request",
    )
    compare_fields: str = Field(
        default="",
        description="Comma separated lesson fields that count as a modification (empty = all)",
    )
    resolve_host_on_start: bool = Field(
        default=True,
        description="Resolve untis_host at startup and refuse to start if it fails",
    )

    # HTTP front end
    listen_host: str = Field(default="0.0.0.0", description="Bind address")
    listen_port: int = Field(default=80, ge=1, le=65535, description="Bind port")

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def _fetch_timeout_covers_requests(self) -> "WatchConfig":
        needed = worst_case_fetch_seconds(self.request_timeout_seconds)
        if self.fetch_timeout_seconds < needed:
            raise ValueError(
                f"fetch_timeout_seconds ({self.fetch_timeout_seconds}) must be at least {needed}: "
                f"login with retry, timetable and logout at request_timeout_seconds "
                f"({self.request_timeout_seconds}) each"
            )
        return self

    def comparison_policy(self) -> ComparisonPolicy:
        """Build the comparison policy described by compare_fields.

        Raises:
            ValueError: If a listed field is not a mutable lesson field.
        """
        names = [name.strip() for name in self.compare_fields.split(",") if name.strip()]
        if not names:
            return ComparisonPolicy()
        return ComparisonPolicy(fields=frozenset(names))


# Singleton pattern
_config: WatchConfig | None = None


def get_config() -> WatchConfig:
    """Get the service configuration singleton.

    Returns:
        WatchConfig: Configuration instance
    """
    global _config
    if _config is None:
        _config = WatchConfig()
    return _config
