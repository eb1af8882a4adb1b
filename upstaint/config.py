"""
Configuration management for upstaint.

This module uses Pydantic's BaseSettings to manage configuration
through environment variables. Values are read once into a Settings
instance which is then handed explicitly to the components that need it.
"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TAINT_KEY = "ups.spikedhand.com/status"
DEFAULT_NODE_LABEL = "ups.spikedhand.com/name"


class Settings(BaseSettings):
    """
    Application settings.

    These settings are loaded from environment variables prefixed with
    ``UPSTAINT_``.
    """

    # NUT Server Configuration
    NUT_HOST: str = "localhost"
    NUT_PORT: int = 3493
    NUT_USERNAME: str | None = None
    NUT_PASSWORD: str | None = None
    NUT_TIMEOUT: int = 5  # seconds

    # UPS devices to watch; empty means every UPS the server reports
    UPS_NAMES: list[str] = []

    # Classification
    BATTERY_THRESHOLD: float = 20.0  # percent, <= 0 disables the threshold rule

    # Cluster
    TAINT_KEY: str = Field(DEFAULT_TAINT_KEY, min_length=1)
    NODE_LABEL: str = Field(DEFAULT_NODE_LABEL, min_length=1)
    KUBECONFIG: str | None = None
    KUBE_TIMEOUT: float = 30.0  # seconds

    # Loop mode
    POLL_INTERVAL: int = 30  # seconds
    DRY_RUN: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        env_prefix="UPSTAINT_",
    )

