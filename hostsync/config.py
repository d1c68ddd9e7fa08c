"""hostsync configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    # Control plane connection
    controller_url: str = "https://localhost:443"
    username: str = ""
    auth_token: str = ""  # ZCPToken session cookie value
    verify_tls: bool = True

    # HTTP client
    http_timeout: float = 30.0
    http_max_connections: int = 20
    http_max_keepalive_connections: int = 10

    # Entity store cadence (seconds). refresh_interval=None disables the
    # steady-state self refresh; the failure retry still applies.
    refresh_interval: float | None = 3.0
    retry_delay: float = 1.0
    fetch_timeout: float | None = None  # None = wait for the transport timeout

    # Host status feed
    status_poll_interval: float = 3.0

    # New host form defaults
    default_rpc_port: int = 4979
    default_ram_limit: str = "100%"

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"

    # HTTP surface
    bind_host: str = "0.0.0.0"
    bind_port: int = 8080

    class Config:
        env_prefix = "HOSTSYNC_"


settings = Settings()
