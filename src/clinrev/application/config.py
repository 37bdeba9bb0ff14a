from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from clinrev.domain.constants import (
    DEFAULT_TOPIC_LIMIT,
    HEATMAP_MONTHS,
    LOW_SAMPLE_THRESHOLD,
    MOMENTUM_DELTA,
)


class AppConfig(BaseSettings):
    """
    Configuration model for clinrev.
    Supports loading from:
    1. Environment variables (CLINREV_*)
    2. Config file (~/.config/clinrev/config.toml)
    3. Manual overrides (CLI / server)
    """

    model_config = SettingsConfigDict(
        env_prefix="CLINREV_",
        extra="ignore",
    )

    # Paths
    data_file: Path = Field(
        default_factory=lambda: Path.home() / ".config/clinrev/data.json"
    )

    # Analytics
    default_sort: Literal["weakness", "strength", "alpha", "urgency"] = "weakness"
    topic_limit: int = Field(default=DEFAULT_TOPIC_LIMIT, ge=1)
    heatmap_months: int = Field(default=HEATMAP_MONTHS, ge=1)
    low_sample_threshold: int = Field(default=LOW_SAMPLE_THRESHOLD, ge=1)
    momentum_delta: int = Field(default=MOMENTUM_DELTA, ge=0)

    verbose: int = 1

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

        # Evaluated per call so a patched HOME is honoured.
        toml_files = [
            Path.home() / ".config/clinrev/config.toml",
            Path.home() / ".clinrev.toml",
        ]
        toml_file = next((f for f in toml_files if f.exists()), None)

        # Earlier sources win: overrides, then environment, then the file.
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("data_file", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path:
        return Path(v).expanduser()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/clinrev/config.toml (if exists)
    3. Environment variables (CLINREV_*)
    4. cli_overrides (None values are ignored)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
