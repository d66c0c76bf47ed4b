"""Configuration management.

Loads from an optional TOML config file + environment variables.
Uses pydantic-settings for validation and env var overriding
(prefix ``POS_``, nested delimiter ``__``, e.g. ``POS_WEBHOOK__URL``).
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class WebhookConfig(BaseModel):
    url: str = ""  # Empty disables outbound delivery
    secret: str = "supersecret"
    max_attempts: int = 4  # 1 initial + 3 retries
    base_delay_seconds: float = 1.0  # Doubles after each failed attempt
    timeout_seconds: float = 10.0  # Per attempt
    event_header: str = "x-pos-event"
    signature_header: str = "x-pos-signature"

    @property
    def enabled(self) -> bool:
        return bool(self.url)


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "json"  # "json" or "console"


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Top-level application settings.

    Loaded from TOML config files, overridden by environment variables.
    """

    host: str = "0.0.0.0"
    port: int = 4001
    api_key: str = "pos-sim-dev-key"
    venue_id: str = "pos-sim-venue-001"
    default_tax_rate: Decimal = Decimal("0.0825")
    seed_catalog: bool = True
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    broadcast_send_timeout_seconds: float = 5.0

    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = SettingsConfigDict(env_prefix="POS_", env_nested_delimiter="__")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlFileSource(settings_cls),
            file_secret_settings,
        )

    def validate_webhook(self) -> None:
        """Reject webhook settings that could never deliver a verifiable call."""
        from .errors import ConfigError

        if not self.webhook.enabled:
            return

        if not self.webhook.secret:
            raise ConfigError(
                "Webhook delivery requires a signing secret (POS_WEBHOOK__SECRET)."
            )
        if self.webhook.max_attempts < 1:
            raise ConfigError(
                f"webhook.max_attempts must be >= 1, got {self.webhook.max_attempts}"
            )


class TomlFileSource(PydanticBaseSettingsSource):
    """Settings source backed by the TOML file named in ``toml_file``.

    Ranks below environment variables, so ``POS_*`` always wins over the
    file and init kwargs win over both.
    """

    def __init__(self, settings_cls: type[BaseSettings]) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        path = self.config.get("toml_file")
        if path and Path(path).exists():
            import tomli

            with open(path, "rb") as f:
                self._data = tomli.load(f)

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return dict(self._data)


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings: overrides > env vars > TOML file > defaults.

    Args:
        config_path: Path to TOML config file (optional; ignored if absent).
        overrides: Values applied on top of everything else.  Sub-config
            tables merge key by key with the lower sources.
    """
    if not config_path:
        return Settings(**(overrides or {}))

    class FileSettings(Settings):
        model_config = SettingsConfigDict(toml_file=Path(config_path))

    return FileSettings(**(overrides or {}))
