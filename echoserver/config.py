"""
Runtime settings for the echo server.

Settings are resolved from, in increasing order of precedence: built-in
defaults, a TOML settings file, and ``ECHO_SERVER_*`` environment variables.
Command line flags are applied on top of that by :mod:`echoserver.cli`.
"""

import logging
import os
import tomllib
import typing as t
from ipaddress import IPv4Address, IPv6Address
from pathlib import Path

import pydantic
from pydantic import BaseModel, Field

from .statics import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_SETTINGS_FILE, VERBOSE_ENV

__all__ = [
    "ENVIRONMENT_VARIABLES",
    "Settings",
    "SettingsError",
    "load_settings",
]

logger = logging.getLogger(__name__)

#: Environment variables, by the setting they override.
ENVIRONMENT_VARIABLES = {
    "host": "ECHO_SERVER_HOST",
    "port": "ECHO_SERVER_PORT",
    "workers": "ECHO_SERVER_WORKERS",
    "verbose": VERBOSE_ENV,
}


class SettingsError(ValueError):
    """Raised when a configuration value is invalid."""


class Settings(BaseModel):
    """Where to listen, how many workers to run, and whether to log exchanges."""

    model_config = {"extra": "ignore", "frozen": True}

    host: t.Union[IPv4Address, IPv6Address] = IPv4Address(DEFAULT_HOST)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    workers: t.Optional[int] = Field(default=None, ge=1)
    verbose: bool = False

    @property
    def bind_address(self) -> str:
        if isinstance(self.host, IPv6Address):
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def merge(self, **overrides) -> "Settings":
        """Returns a copy with every override that is not ``None`` applied.

        Raises:
            SettingsError: If an override is not a valid value.
        """
        values = self.model_dump()
        values.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return Settings(**values)
        except pydantic.ValidationError as ex:
            raise SettingsError(_describe(ex)) from ex


def _describe(ex: pydantic.ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}" for error in ex.errors()
    )


def _read_file(path: Path) -> t.Optional[t.Dict[str, t.Any]]:
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        logger.info(f"No settings file at {path}, using default values")
        return None
    except (OSError, tomllib.TOMLDecodeError) as ex:
        logger.warning(f"Could not load {path} ({ex}). Using default values.")
        return None

    unknown = sorted(set(data) - set(Settings.model_fields))
    if unknown:
        logger.warning(f"Ignoring unknown settings in {path}: {', '.join(unknown)}")
    return {key: value for key, value in data.items() if key in Settings.model_fields}


def load_settings(
    path: t.Union[str, Path, None] = DEFAULT_SETTINGS_FILE,
    environ: t.Optional[t.Mapping[str, str]] = None,
) -> Settings:
    """
    Resolve settings from the settings file and the environment.

    Args:
        path: TOML settings file to read, if it exists. ``None`` skips the file.
        environ: Environment mapping (default: ``os.environ``)

    Returns:
        Settings: The resolved settings.

    Raises:
        SettingsError: If an environment variable holds an invalid value.
    """
    if environ is None:
        environ = os.environ

    settings = Settings()
    if path is not None:
        path = Path(path)
        data = _read_file(path)
        if data is not None:
            try:
                settings = settings.merge(**data)
            except SettingsError as ex:
                logger.warning(f"Could not load {path} ({ex}). Using default values.")
            else:
                logger.info(f"Loaded settings from {path}")

    from_env = {
        key: environ[name] for key, name in ENVIRONMENT_VARIABLES.items() if environ.get(name)
    }
    if from_env:
        settings = settings.merge(**from_env)
        names = ", ".join(ENVIRONMENT_VARIABLES[key] for key in from_env)
        logger.info(f"Applied settings from the environment: {names}")
    return settings
