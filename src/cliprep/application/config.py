from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cliprep.domain.constants import EXTRA_NEW_BONUS, MAX_NEW_PER_DAY, PROGRESS_SAVE_INTERVAL


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/cliprep/config.toml",
        Path.home() / ".cliprep.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for cliprep.
    Supports loading from:
    1. Environment variables (CLIPREP_*)
    2. Config file (~/.config/cliprep/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="CLIPREP_",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/cliprep")
    media_dir: Path | None = None

    # Pacing
    max_new_per_day: int = Field(default=MAX_NEW_PER_DAY, ge=0)
    extra_new_bonus: int = Field(default=EXTRA_NEW_BONUS, ge=0)
    max_review_per_day: int | None = Field(default=None, ge=0)  # None = unbounded

    # Resume offsets
    progress_save_interval: float = Field(default=PROGRESS_SAVE_INTERVAL, ge=0)

    # Server
    host: str = "127.0.0.1"
    port: int = 8788

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

        toml_file = next((f for f in config_files() if f.exists()), None)

        # Later sources lose: CLI overrides beat env, env beats the file.
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("data_dir", mode="before")
    @classmethod
    def resolve_dir(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("media_dir", mode="before")
    @classmethod
    def resolve_media_dir(cls, v: Any) -> Path | None:
        if v is None:
            return None
        return Path(v).expanduser().resolve()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/cliprep/config.toml (if exists)
    3. Environment variables (CLIPREP_*)
    4. cli_overrides (passed from Typer), None values ignored
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    config = AppConfig(**overrides)

    if config.media_dir is None:
        config.media_dir = config.data_dir / "media"

    return config
