from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    # Read from OS env and optional .env file in project root.
    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Environment / mode
    environment: str = Field(
        "development",
        alias="APP_ENV",
        description="Current environment, e.g. development / production",
    )

    # CORS
    cors_allow_origins: str = Field(
        "http://localhost:3000",
        alias="CORS_ALLOW_ORIGINS",
        description="Comma-separated list of allowed origins",
    )

    # Application log level for the readerai logger.
    log_level: str = Field(
        "INFO",
        alias="LOG_LEVEL",
        description="Application log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_timezone: Optional[str] = Field(
        default=None,
        alias="LOG_TIMEZONE",
        description="Timezone name for log timestamps, e.g. 'Europe/Berlin'. Defaults to system local time.",
    )
    log_dir: str = Field(
        "logs",
        alias="LOG_DIR",
        description="Directory for the daily application log files",
    )

    # HTTP timeouts
    upstream_timeout: float = Field(
        600.0,
        alias="UPSTREAM_TIMEOUT",
        description="Transport timeout (seconds) for upstream and bridge calls",
    )

    # Local CLI bridge
    cli_bridge_url: str = Field(
        "http://127.0.0.1:3456",
        alias="CLI_BRIDGE_URL",
        description="Base URL of the local CLI bridge daemon",
    )
    local_cli_override: Optional[bool] = Field(
        default=None,
        alias="ENABLE_LOCAL_CLI",
        description=(
            "Explicitly enable/disable the local CLI providers; "
            "defaults to enabled only when APP_ENV=development"
        ),
    )
    local_bridge_idle_timeout: float = Field(
        120.0,
        alias="LOCAL_BRIDGE_IDLE_TIMEOUT",
        description="Abort a local bridge stream when no bytes arrive for this many seconds; 0 disables",
    )

    # Routing gateway
    ai_gateway_api_key: Optional[str] = Field(
        default=None,
        alias="AI_GATEWAY_API_KEY",
        description="Process-level credential used when the caller supplies no gateway key",
    )
    ai_gateway_base_url: str = Field(
        "https://ai-gateway.vercel.sh/v1",
        alias="AI_GATEWAY_BASE_URL",
        description="OpenAI-compatible base URL of the routing gateway",
    )

    # Shared token required by clients when calling the AI routes.
    api_auth_token: Optional[str] = Field(
        default=None,
        alias="API_AUTH_TOKEN",
        description="Bearer token expected on AI routes; unset disables the check",
    )

    @property
    def enable_local_cli(self) -> bool:
        if self.local_cli_override is not None:
            return bool(self.local_cli_override)
        return self.environment.strip().lower() == "development"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]


settings = Settings()
