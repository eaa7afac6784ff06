"""Server configuration.

Settings come from three sources, later ones winning:

1. a YAML file (``config_file``)
2. ``TOONDB_*`` environment variables
3. explicit keyword overrides (CLI flags)

Environment variables:
- TOONDB_API_KEY: required shared secret for the HTTP API
- TOONDB_DB_PATH: SQLite database path (default: "data/toondb.db")
- TOONDB_HOST: host to bind to (default: "0.0.0.0")
- TOONDB_PORT: port to listen on (default: 3000)
- TOONDB_STRICT_TOON: reject lines that are not TOON (default: False)
- TOONDB_LOG_LEVEL: logging level (default: "INFO")
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type, Union

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .errors import ConfigError

DEFAULT_DB_PATH = "data/toondb.db"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a YAML config file. The document must be a mapping."""
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from None
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping of settings")
    return data


class YamlFileSource(PydanticBaseSettingsSource):
    """Values from the YAML file named by the ``config_file`` init argument."""

    def __init__(self, settings_cls: Type[BaseSettings], init_settings: PydanticBaseSettingsSource):
        super().__init__(settings_cls)
        path = init_settings().get("config_file")
        self.data = load_config_file(path) if path is not None else {}

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return self.data.get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        return dict(self.data)


class Settings(BaseSettings):
    """Runtime settings for the HTTP and MCP servers.

    ``api_key`` has no usable default: validation fails without one.
    """

    model_config = SettingsConfigDict(env_prefix="TOONDB_", env_ignore_empty=True, extra="forbid")

    config_file: Optional[Path] = None
    api_key: str = Field(default="", validate_default=True)
    db_path: str = DEFAULT_DB_PATH
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    strict_toon: bool = False
    log_level: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, env_settings, YamlFileSource(settings_cls, init_settings)

    @field_validator("api_key")
    @classmethod
    def require_api_key(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("An API key is required: set TOONDB_API_KEY or api_key in the config file")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        v_up = str(v).upper()
        if v_up not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return v_up


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        where = ".".join(str(loc) for loc in item["loc"])
        parts.append(f"{where}: {item['msg']}" if where else item["msg"])
    return "; ".join(parts)


def load_settings(path: Optional[Union[str, Path]] = None, **overrides: Any) -> Settings:
    """Build Settings and fail fast if anything is missing or invalid.

    ``overrides`` set to None are ignored, so unset CLI flags fall through
    to the environment and the config file.
    """
    values = {name: value for name, value in overrides.items() if value is not None}
    try:
        return Settings(config_file=path, **values)
    except ValidationError as e:
        raise ConfigError(_describe(e)) from None


def configure_logging(level: str = "INFO") -> None:
    """Send log records to stderr in a single line format."""
    if level.upper() not in LOG_LEVELS:
        raise ConfigError(f"Unknown log level: {level}")
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
