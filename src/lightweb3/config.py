"""Runtime configuration loaded from LIGHTWEB3_* environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    rpc_url: str = "http://localhost:8545"
    chain_id: int = 1
    request_timeout_s: float = 20.0
    max_connections: int = 64

    poll_interval_s: float = 1.0
    gas_limit: int = 6_721_975

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="LIGHTWEB3_", extra="ignore")


def get_settings() -> Settings:
    """Return settings object."""

    return Settings()
