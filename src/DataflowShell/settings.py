# === NAVMAP v1 ===
# {
#   "module": "DataflowShell.settings",
#   "purpose": "Define configuration models, environment overrides, and cache/log directory resolution",
#   "sections": [
#     {"id": "constants", "name": "Layout constants", "anchor": "CONST", "kind": "constants"},
#     {"id": "loggingconfiguration", "name": "LoggingConfiguration", "anchor": "class-loggingconfiguration", "kind": "class"},
#     {"id": "httpconfiguration", "name": "HttpConfiguration", "anchor": "class-httpconfiguration", "kind": "class"},
#     {"id": "environmentoverrides", "name": "EnvironmentOverrides", "anchor": "class-environmentoverrides", "kind": "class"},
#     {"id": "resolvedconfig", "name": "ResolvedConfig", "anchor": "class-resolvedconfig", "kind": "class"},
#     {"id": "resolve-home", "name": "resolve_home", "anchor": "function-resolve-home", "kind": "function"},
#     {"id": "resolve-cache-root", "name": "resolve_cache_root", "anchor": "function-resolve-cache-root", "kind": "function"},
#     {"id": "resolve-log-dir", "name": "resolve_log_dir", "anchor": "function-resolve-log-dir", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Configuration models and environment overrides for the shell launcher.

All directories live beneath the cf CLI home so the tool shares its layout
with the ``cf`` command itself::

    <CF_HOME or HOME>/.cf/spring-cloud-dataflow-for-pcf/
        cache/            downloaded shell jars plus the ``.cachedata`` etag index
        logs/             rotated JSON log files

Environment variables are read when :meth:`ResolvedConfig.from_environment`
(or one of the ``resolve_*`` helpers) is called, never at import time, so
tests may freely monkeypatch them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

__all__ = [
    "APP_DIRECTORY",
    "CF_DATA_DIRECTORY",
    "CACHE_DIRECTORY",
    "LOG_DIRECTORY",
    "CACHE_INDEX_FILENAME",
    "CACHE_DIRECTORY_MODE",
    "CACHE_INDEX_FILE_MODE",
    "CACHE_FILE_MODE",
    "LoggingConfiguration",
    "HttpConfiguration",
    "EnvironmentOverrides",
    "ResolvedConfig",
    "resolve_home",
    "resolve_cache_root",
    "resolve_log_dir",
]

# --- Layout constants ----------------------------------------------------------

CF_DATA_DIRECTORY = ".cf"
APP_DIRECTORY = "spring-cloud-dataflow-for-pcf"
CACHE_DIRECTORY = "cache"
LOG_DIRECTORY = "logs"
CACHE_INDEX_FILENAME = ".cachedata"
CACHE_DIRECTORY_MODE = 0o755
CACHE_INDEX_FILE_MODE = 0o644
CACHE_FILE_MODE = 0o644


class LoggingConfiguration(BaseModel):
    """Logging-related configuration for the launcher."""

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    max_log_size_mb: int = Field(default=10, gt=0, description="Maximum size of rotated log files")
    retention_days: int = Field(default=30, ge=1, description="Retention period for log files")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        """Normalise logging levels and ensure they match the supported set."""

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        upper = value.upper()
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")
        return upper

    model_config = {"validate_assignment": True}


class HttpConfiguration(BaseModel):
    """HTTP client settings shared by server queries and artifact downloads."""

    timeout_sec: int = Field(default=300, gt=0, le=3600)
    connect_timeout_sec: float = Field(default=10.0, gt=0.0, le=120.0)
    skip_ssl_validation: bool = Field(
        default=False,
        description="Disable TLS certificate checks (mirrors `cf api --skip-ssl-validation`)",
    )
    user_agent: str = Field(default="dataflow-shell-cli")

    model_config = {"validate_assignment": True, "extra": "ignore"}


class EnvironmentOverrides(BaseSettings):
    """Pydantic settings model exposing environment-derived values."""

    cf_home: Optional[str] = Field(default=None, alias="CF_HOME")
    home: Optional[str] = Field(default=None, alias="HOME")
    log_level: Optional[str] = Field(default=None, alias="DATAFLOW_SHELL_LOG_LEVEL")
    log_dir: Optional[Path] = Field(default=None, alias="DATAFLOW_SHELL_LOG_DIR")
    timeout_sec: Optional[int] = Field(default=None, alias="DATAFLOW_SHELL_TIMEOUT_SEC")

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    @field_validator("cf_home", "home", "log_level", mode="before")
    @classmethod
    def _blank_as_unset(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        stripped = str(value).strip()
        return stripped or None


def resolve_home(overrides: Optional[EnvironmentOverrides] = None) -> Path:
    """Return the directory under which ``.cf`` lives: ``CF_HOME``, else ``HOME``."""

    env = overrides if overrides is not None else EnvironmentOverrides()
    home = env.cf_home or env.home
    if home is None:
        raise ConfigurationError("Neither CF_HOME nor HOME is set; cannot locate the cf home directory")
    return Path(home)


def resolve_cache_root(overrides: Optional[EnvironmentOverrides] = None) -> Path:
    """Return ``<home>/.cf/spring-cloud-dataflow-for-pcf/cache`` without creating it."""

    return resolve_home(overrides) / CF_DATA_DIRECTORY / APP_DIRECTORY / CACHE_DIRECTORY


def resolve_log_dir(overrides: Optional[EnvironmentOverrides] = None) -> Path:
    env = overrides if overrides is not None else EnvironmentOverrides()
    if env.log_dir is not None:
        return env.log_dir
    return resolve_home(env) / CF_DATA_DIRECTORY / APP_DIRECTORY / LOG_DIRECTORY


class ResolvedConfig(BaseModel):
    """Fully resolved configuration combining defaults with environment overrides."""

    logging: LoggingConfiguration = Field(default_factory=LoggingConfiguration)
    http: HttpConfiguration = Field(default_factory=HttpConfiguration)
    cache_root: Path
    log_dir: Path

    model_config = {"validate_assignment": True}

    @classmethod
    def from_environment(cls) -> "ResolvedConfig":
        """Construct configuration from defaults and the current environment."""

        env = EnvironmentOverrides()
        logging_config = LoggingConfiguration()
        if env.log_level is not None:
            logging_config.level = env.log_level
        http_config = HttpConfiguration()
        if env.timeout_sec is not None:
            http_config.timeout_sec = env.timeout_sec
        return cls(
            logging=logging_config,
            http=http_config,
            cache_root=resolve_cache_root(env),
            log_dir=resolve_log_dir(env),
        )
