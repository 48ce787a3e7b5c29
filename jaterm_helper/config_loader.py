"""Provide functions for loading bootstrap config from YAML."""

import logging
import os
from pathlib import Path

import voluptuous as vol
import yaml

from .exceptions import ConfigError
from .presets.const import (
    CONFIG_ENV,
    CONSENT_POLICIES,
    DEFAULT_CONFIG_PATH,
    INTEGRATION_DEFAULTS,
)

_LOGGER = logging.getLogger(__name__)


def build_config_schema(defaults=None) -> vol.Schema:
    """Unified config schema; every key is optional and defaulted."""
    defaults = defaults or INTEGRATION_DEFAULTS
    return vol.Schema(
        {
            vol.Optional("username", default=defaults["username"]): str,
            vol.Optional("port", default=defaults["port"]): vol.All(
                vol.Coerce(int), vol.Range(min=1, max=65535)
            ),
            vol.Optional("ssh_key_path", default=defaults["ssh_key_path"]): str,
            vol.Optional(
                "connect_timeout", default=defaults["connect_timeout"]
            ): vol.All(vol.Coerce(float), vol.Range(min=0.1)),
            vol.Optional(
                "command_timeout", default=defaults["command_timeout"]
            ): vol.All(vol.Coerce(float), vol.Range(min=0.1)),
            vol.Optional(
                "upload_chunk_size", default=defaults["upload_chunk_size"]
            ): vol.All(vol.Coerce(int), vol.Range(min=1)),
            vol.Optional(
                "success_dismiss_delay", default=defaults["success_dismiss_delay"]
            ): vol.All(vol.Coerce(float), vol.Range(min=0)),
            vol.Optional(
                "error_dismiss_delay", default=defaults["error_dismiss_delay"]
            ): vol.All(vol.Coerce(float), vol.Range(min=0)),
            vol.Optional("consent", default=defaults["consent"]): vol.In(
                CONSENT_POLICIES
            ),
        }
    )


CONFIG_SCHEMA = build_config_schema()


def resolve_config_path(config_path: str | None = None) -> Path:
    """Pick the config file: explicit path, then env var, then default."""
    raw = config_path or os.getenv(CONFIG_ENV) or DEFAULT_CONFIG_PATH
    return Path(raw).expanduser()


def load_config(config_path: str | None = None) -> dict:
    """Load and validate bootstrap configuration from a YAML file.

    A missing file yields the defaults.
    """
    config_path = resolve_config_path(config_path)
    try:
        with config_path.open("r", encoding="utf-8") as file:
            raw = yaml.safe_load(file) or {}
    except FileNotFoundError:
        _LOGGER.debug("Configuration file not found: %s", config_path)
        raw = {}
    except yaml.YAMLError as err:
        _LOGGER.error("Error parsing YAML from %s: %s", config_path, err)
        raise ConfigError(f"Invalid YAML in {config_path}") from err
    except OSError as err:
        _LOGGER.exception("Unexpected error loading config from %s", config_path)
        raise ConfigError(f"Error loading config from {config_path}") from err

    if not isinstance(raw, dict):
        raise ConfigError(f"Config in {config_path} must be a mapping")
    try:
        return CONFIG_SCHEMA(raw)
    except vol.Invalid as err:
        raise ConfigError(f"Invalid config in {config_path}: {err}") from err
