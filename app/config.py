from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, ClassVar, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic_settings.sources import PydanticBaseSettingsSource, YamlConfigSettingsSource

from domain.page_context import DEFAULT_NATIVE_BYPASS_HOSTS
from domain.services.selection_state import DEFAULT_MIN_SELECTION_SIZE

DEFAULT_CONFIG_PATH = Path("config/overlay.yaml")


def _split_hosts(value: object) -> list[str]:
    """Accept a list, a comma-separated string or a bracketed string of hosts."""
    items = value if isinstance(value, list) else [value]
    hosts: list[str] = []
    for item in items:
        for token in str(item).strip().strip("'\"").strip("[]").split(","):
            host = token.strip().strip("'\"").strip().lower()
            if host:
                hosts.append(host)
    return hosts


class StorageSettings(BaseModel):
    backend: Literal["memory", "filesystem"] = "filesystem"
    path: Path = Path("data/storage.json")


class EngineSettings(BaseModel):
    native_bypass_hosts: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_NATIVE_BYPASS_HOSTS)
    )
    min_selection_size: float = Field(default=DEFAULT_MIN_SELECTION_SIZE, ge=0)
    reinject_retry_delay_seconds: float = Field(default=0.1, ge=0)
    viewport_width: float = Field(default=1280.0, ge=0)
    viewport_height: float = Field(default=800.0, ge=0)

    @field_validator("native_bypass_hosts", mode="before")
    @classmethod
    def normalize_hosts(cls, value: object) -> list[str]:
        if value is None:
            return []
        return _split_hosts(value)


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MW_", env_nested_delimiter="__")

    storage: StorageSettings = StorageSettings()
    engine: EngineSettings = EngineSettings()
    log_level: str = "INFO"

    _yaml_path: ClassVar[Path | None] = None

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> str:
        return str(value).upper() if value else "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        ]
        if cls._yaml_path:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=cls._yaml_path))
        return tuple(sources)


def load_settings(config_path: Path | None = None) -> AppSettings:
    env_path = os.getenv("MW_CONFIG_PATH")
    resolved_path: Path | None = None

    if config_path is not None:
        resolved_path = config_path
    elif env_path:
        resolved_path = Path(env_path)
    elif DEFAULT_CONFIG_PATH.exists():
        resolved_path = DEFAULT_CONFIG_PATH

    previous = AppSettings._yaml_path
    try:
        if resolved_path is not None:
            if not resolved_path.exists():
                msg = f"Config file not found: {resolved_path}"
                raise FileNotFoundError(msg)
            AppSettings._yaml_path = resolved_path
        return AppSettings()
    finally:
        AppSettings._yaml_path = previous
