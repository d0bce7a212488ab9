"""Configuration template substitution utilities."""

import os
import re
from collections.abc import Mapping
from pathlib import Path

import yaml
from loguru import logger
from pydantic_core import ValidationError

from books_api.runtime.config.config_data import ConfigData
from books_api.runtime.settings import EnvironmentVariables

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


def environment_overrides(env_mode: str, environ: Mapping[str, str]) -> dict[str, str]:
    """Return the environment with ``<ENV_MODE>_`` prefixed variables promoted.

    ``PRODUCTION_REDIS_URL`` wins over ``REDIS_URL`` when running in production.
    """
    prefix = f"{env_mode.upper()}_"
    merged = dict(environ)
    overrides = {
        name[len(prefix):]: value
        for name, value in environ.items()
        if name.startswith(prefix) and len(name) > len(prefix)
    }
    if overrides:
        logger.info(
            "Applying {} environment-specific overrides: {}",
            env_mode,
            sorted(overrides),
        )
    merged.update(overrides)
    return merged


def substitute_env_vars(text: str, environ: Mapping[str, str] | None = None) -> str:
    """
    Substitute environment variable placeholders in text.

    Supports formats:
    - ${VAR_NAME} - required variable (raises error if missing)
    - ${VAR_NAME:-default} - optional with default value
    - ${VAR_NAME:?error_message} - required with custom error message
    """
    env = os.environ if environ is None else environ

    def replacer(match: re.Match[str]) -> str:
        var_expr = match.group(1)

        if ":-" in var_expr:
            var_name, default = var_expr.split(":-", 1)
            value = env.get(var_name)
            return value if value else default

        if ":?" in var_expr:
            var_name, error_msg = var_expr.split(":?", 1)
            value = env.get(var_name)
            if value is None:
                raise ValueError(f"Required environment variable {var_name}: {error_msg}")
            return value

        value = env.get(var_expr)
        if value is None:
            raise ValueError(f"Required environment variable {var_expr} not set")
        return value

    return _PLACEHOLDER.sub(replacer, text)


def load_templated_yaml(
    file_path: Path, env_vars: EnvironmentVariables | None = None
) -> ConfigData:
    """
    Load a YAML file with environment variable substitution.

    Args:
        file_path: Path to the YAML file
        env_vars: Process settings; read from the environment when omitted

    Returns:
        Validated configuration

    Raises:
        ValueError: If required environment variables are missing or the
            file does not describe a valid configuration
        FileNotFoundError: If the YAML file doesn't exist
    """
    env_vars = env_vars or EnvironmentVariables()

    with open(file_path) as f:
        content = f.read()

    logger.info("Loading configuration for environment: {}", env_vars.environment)
    environ = environment_overrides(env_vars.environment, os.environ)
    substituted_content = substitute_env_vars(content, environ)

    try:
        loaded = yaml.safe_load(substituted_content)
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML: {e}") from e
    if not isinstance(loaded, dict):
        raise ValueError("Failed to parse YAML")

    try:
        config = ConfigData(**(loaded.get("config") or {}))
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    return apply_environment(config, env_vars)


def apply_environment(config: ConfigData, env_vars: EnvironmentVariables) -> ConfigData:
    """Fold process-level settings into a loaded configuration."""
    config.app.environment = env_vars.environment

    if env_vars.log_level:
        config.logging.level = env_vars.log_level.upper()

    if not config.redis.url and env_vars.redis_addr:
        config.redis.url = f"redis://{env_vars.redis_addr}"
        logger.info("Using REDIS_ADDR for Redis: {}", env_vars.redis_addr)

    return config
