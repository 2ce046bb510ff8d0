"""Runtime settings for toolbridge using pydantic-settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BridgeSettings(BaseSettings):
    """Main configuration settings for toolbridge.

    All settings can be overridden via environment variables with the
    TOOLBRIDGE_ prefix, or a ``.env`` file in the working directory.
    For example, TOOLBRIDGE_PORT will override the port setting.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 3000
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Completion service (LiteLLM model string)
    model: str = "anthropic/claude-3-5-sonnet-20241022"
    api_key: str | None = None
    api_base: str | None = None
    max_tokens: int = 1000
    system_prompt: str | None = None

    # Orchestration
    max_rounds: int = 10
    parallel_invocations: bool = False
    separator: str = "."

    # Provider lifecycle (seconds)
    handshake_timeout: float = 30.0
    invoke_timeout: float | None = None
    shutdown_timeout: float = 10.0

    # Tracing
    otlp_endpoint: str | None = None

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="TOOLBRIDGE_",
        env_file=".env",
        extra="ignore",
    )
