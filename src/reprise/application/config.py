from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from reprise.domain.constants import (
    DEFAULT_DISPATCH_TIMEOUT,
    DEFAULT_EMAIL_FROM,
    DEFAULT_TICK_SECONDS,
    RESEND_API_URL,
)

CONFIG_FILES = [
    Path.home() / ".config/reprise/config.toml",
    Path.home() / ".reprise.toml",
]


class AppConfig(BaseSettings):
    """
    Configuration model for Reprise.
    Supports loading from:
    1. Environment variables (REPRISE_*)
    2. Config file (~/.config/reprise/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="REPRISE_",
        extra="ignore",
    )

    # Storage
    store: Literal["memory", "yaml"] = "yaml"
    data_file: Path = Field(default_factory=lambda: Path.home() / ".config/reprise/data.yaml")

    # Clock
    timezone: str | None = None  # IANA name; None uses the system local zone

    # Dispatch
    ticker_enabled: bool = True
    tick_seconds: float = Field(default=DEFAULT_TICK_SECONDS, gt=0)
    dispatch_timeout: float = Field(default=DEFAULT_DISPATCH_TIMEOUT, gt=0)

    # Email
    resend_api_key: str | None = None
    resend_url: str = RESEND_API_URL
    email_from: str = DEFAULT_EMAIL_FROM

    log_level: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # First existing file wins
        toml_file = next((f for f in CONFIG_FILES if f.exists()), None)

        # Earlier sources take priority: CLI overrides, then env, then file.
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("data_file", mode="before")
    @classmethod
    def resolve_data_file(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str | None) -> str | None:
        if not v:
            return None
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/reprise/config.toml (if exists)
    3. Environment variables (REPRISE_*)
    4. cli_overrides (passed from Typer); None values are ignored
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
