"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, config.toml only contains overrides.
A deployable service needs [service] name and a [logger] section.
"""

from __future__ import annotations

from pydantic import BaseModel

# --- config.toml sections ---


class ServiceConfig(BaseModel):
    """[service] section."""

    model_config = {"frozen": True}

    name: str = "cloudsvc"


class LoggerConfig(BaseModel):
    """[logger] section.

    ``level`` and ``output`` stay plain strings here; they are checked when
    the logger is built so a bad value is reported as a logging error.
    """

    model_config = {"frozen": True}

    level: str = "info"
    output: str = "stdout"


class GcpConfig(BaseModel):
    """[gcp] section (read only when ``logger.output`` is ``gcp_logging``)."""

    model_config = {"frozen": True}

    project_id: str = ""
    service_account_path: str = ""
