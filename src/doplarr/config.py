"""Configuration management for doplarr."""

from __future__ import annotations

from contextvars import ContextVar
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from doplarr.errors import ConfigurationError
from doplarr.providers.base import MediaKind
from doplarr.providers.radarr import MovieStatus, RadarrMonitor
from doplarr.providers.sonarr import SeriesType, SonarrMonitor

DEFAULT_CONFIG_FILE = Path("config.toml")

_config_file: ContextVar[Path] = ContextVar("config_file", default=DEFAULT_CONFIG_FILE)


class RadarrConfig(BaseModel):
    """Radarr backend declaration."""

    type: Literal["radarr"] = "radarr"
    media: MediaKind = MediaKind.MOVIE
    url: str
    api_key: str
    monitor_type: RadarrMonitor | None = None
    quality_profile: str | None = None
    rootfolder: str | None = None
    minimum_availability: MovieStatus | None = None


class SonarrConfig(BaseModel):
    """Sonarr backend declaration."""

    type: Literal["sonarr"] = "sonarr"
    media: MediaKind = MediaKind.SERIES
    url: str
    api_key: str
    monitor_type: SonarrMonitor | None = None
    quality_profile: str | None = None
    rootfolder: str | None = None
    series_type: SeriesType | None = None
    season_folders: bool | None = None
    # Restrict which monitor types users can select (e.g. hide "All").
    allowed_monitor_types: list[SonarrMonitor] | None = None

    @model_validator(mode="after")
    def _check_monitor_restriction(self) -> SonarrConfig:
        if self.allowed_monitor_types is not None:
            if not self.allowed_monitor_types:
                raise ValueError("allowed_monitor_types must not be empty")
            if self.monitor_type is not None and self.monitor_type not in self.allowed_monitor_types:
                raise ValueError(f"monitor_type {self.monitor_type.value!r} is not in allowed_monitor_types")
        return self


BackendConfig = Annotated[RadarrConfig | SonarrConfig, Field(discriminator="type")]


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_prefix="DOPLARR_", case_sensitive=False, extra="ignore")

    discord_token: str = Field(min_length=1, description="Discord bot token")
    public_followup: bool = Field(default=True, description="Announce successful requests in the channel")
    log_level: str = Field(default="INFO", description="Log level")
    backends: list[BackendConfig] = Field(min_length=1, description="Media backends to connect to")

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _one_backend_per_kind(self) -> Settings:
        seen: set[MediaKind] = set()
        for backend in self.backends:
            if backend.media in seen:
                raise ValueError(f"more than one backend configured for {backend.media.value!r}")
            seen.add(backend.media)
        return self

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
            TomlConfigSettingsSource(settings_cls, toml_file=_config_file.get()),
        )


def load_settings(config_file: Path = DEFAULT_CONFIG_FILE) -> Settings:
    """Load settings from ``config_file``, with ``DOPLARR_*`` environment overrides."""
    if not config_file.is_file():
        raise ConfigurationError(f"config file not found: {config_file}")
    token = _config_file.set(config_file)
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise ConfigurationError(f"invalid config file {config_file}:\n{exc}") from exc
    except ValueError as exc:
        # tomllib.TOMLDecodeError
        raise ConfigurationError(f"failed to parse TOML in {config_file}: {exc}") from exc
    finally:
        _config_file.reset(token)
