"""Unified settings: env vars and the TOML config file in one object.

Priority chain (highest to lowest):
  1. Init kwargs: overrides passed by callers (tests, embedding code)
  2. Env vars: ``CLOUDSVC_*`` prefix, ``__`` for nested sections
  3. TOML file: the path given with ``-c`` (default ``config.toml``)
  4. Code defaults: baked into the section models

Uses Pydantic Settings v2 with a custom :class:`TomlSettingsSource`.
Unlike the defaults, the TOML file itself is mandatory: a missing file is
a startup error.
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from cloudsvc.config.models import GcpConfig, LoggerConfig, ServiceConfig
from cloudsvc.errors import SettingsError

DEFAULT_CONFIG_PATH = "config.toml"


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from an explicit TOML file."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path is None:
            return
        try:
            raw = toml_path.read_text(encoding="utf-8")
        except OSError as exc:
            msg = f"error open config file {toml_path}: {exc}"
            raise SettingsError(msg) from exc
        try:
            self._data = tomllib.loads(raw)
        except tomllib.TOMLDecodeError as exc:
            msg = f"error parsing toml {toml_path}: {exc}"
            raise SettingsError(msg) from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        """Return the full TOML data dict for Pydantic to merge."""
        return self._data


# Thread-local storage for TOML path during construction.
_tls = threading.local()


class ServiceSettings(BaseSettings):
    """Validated, frozen settings for one service process.

    Attributes:
        config_path: The TOML file the settings were read from, or None
            when constructed without a file (tests, defaults).
    """

    model_config = {
        "frozen": True,
        "env_prefix": "CLOUDSVC_",
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }

    config_path: Path | None = None

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    logger: LoggerConfig = Field(default_factory=LoggerConfig)
    gcp: GcpConfig = Field(default_factory=GcpConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @classmethod
    def from_file(
        cls, config_path: str | Path = DEFAULT_CONFIG_PATH, **overrides: Any
    ) -> ServiceSettings:
        """Load settings from *config_path*, merged with env vars and *overrides*.

        Raises:
            SettingsError: the file is missing or unreadable, is not valid
                TOML, or its values fail validation.
        """
        toml_path = Path(config_path)
        if not toml_path.is_file():
            msg = f"error open config file: {toml_path} does not exist"
            raise SettingsError(msg)

        _tls.toml_path = toml_path
        try:
            return cls(config_path=toml_path, **overrides)
        except ValidationError as exc:
            msg = f"invalid settings in {toml_path}: {exc}"
            raise SettingsError(msg) from exc
        finally:
            _tls.toml_path = None
