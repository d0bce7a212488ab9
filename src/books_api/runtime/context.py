from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
from pathlib import Path

from loguru import logger

from books_api.runtime.config.config_data import ConfigData
from books_api.runtime.config.config_template import (
    apply_environment,
    load_templated_yaml,
)
from books_api.runtime.settings import EnvironmentVariables


@dataclass
class AppContext:
    """Application context containing configuration and other app-wide state."""

    config: ConfigData


def load_default_config() -> ConfigData:
    """Load config.yaml (or ``CONFIG_FILE``), falling back to built-in defaults."""
    env_vars = EnvironmentVariables()
    config_path = Path(env_vars.config_file)
    if not config_path.exists():
        logger.warning(
            "Configuration file {} not found; using defaults", config_path
        )
        return apply_environment(ConfigData(), env_vars)
    return load_templated_yaml(config_path, env_vars)


_default_context = AppContext(config=load_default_config())

_app_context: ContextVar[AppContext] = ContextVar(
    "app_context", default=_default_context
)


def get_context() -> AppContext:
    """Get the current application context."""
    return _app_context.get()


def set_context(context: AppContext) -> Token[AppContext]:
    """Set the current application context.

    Args:
        context: AppContext instance to set as current.
    """
    return _app_context.set(context)


@contextmanager
def with_context(config_override: ConfigData | None = None) -> Iterator[None]:
    """Temporarily replace the configuration of the current context.

    Example:
        test_config = ConfigData()
        test_config.cache.ttl_seconds = 60
        with with_context(test_config):
            assert get_config().cache.ttl_seconds == 60
    """
    if config_override is None:
        yield
        return

    if not isinstance(config_override, ConfigData):
        raise ValueError(
            f"config_override must be ConfigData, or None, got {type(config_override)}"
        )

    token = set_context(replace(get_context(), config=config_override))
    try:
        yield
    finally:
        _app_context.reset(token)


def get_config() -> ConfigData:
    """Convenience function to get the current configuration."""
    return get_context().config
