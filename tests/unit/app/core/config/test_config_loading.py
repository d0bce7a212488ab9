"""Tests for config.yaml loading and environment substitution."""

from pathlib import Path

import pytest

from books_api.runtime.config.config_data import ConfigData, DatabaseConfig, RedisConfig
from books_api.runtime.config.config_template import (
    environment_overrides,
    load_templated_yaml,
    substitute_env_vars,
)
from books_api.runtime.context import get_config, with_context
from books_api.runtime.settings import EnvironmentVariables

CONFIG_TEMPLATE = """
config:
  app:
    port: ${PORT:-8080}
  logging:
    file: ${LOG_FILE:-}
  database:
    url: ${DATABASE_URL:-sqlite:///./books.db}
  redis:
    url: ${REDIS_URL:-}
  cache:
    ttl_seconds: ${BOOK_CACHE_TTL_SECONDS:-0}
  kafka:
    bootstrap_servers: ${KAFKA_BROKER:-localhost:9092}
"""


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_TEMPLATE)
    return path


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in (
        "PORT",
        "LOG_FILE",
        "DATABASE_URL",
        "REDIS_URL",
        "REDIS_ADDR",
        "BOOK_CACHE_TTL_SECONDS",
        "KAFKA_BROKER",
        "APP_ENVIRONMENT",
        "LOG_LEVEL",
        "TEST_KAFKA_BROKER",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSubstituteEnvVars:
    def test_default_used_when_missing_or_empty(self):
        assert substitute_env_vars("${PORT:-8000}", {}) == "8000"
        assert substitute_env_vars("${PORT:-8000}", {"PORT": ""}) == "8000"
        assert substitute_env_vars("${PORT:-8000}", {"PORT": "9000"}) == "9000"

    def test_required_variable(self):
        assert substitute_env_vars("${DATABASE_URL}", {"DATABASE_URL": "x"}) == "x"
        with pytest.raises(ValueError, match="DATABASE_URL"):
            substitute_env_vars("${DATABASE_URL}", {})

    def test_required_with_message(self):
        with pytest.raises(ValueError, match="needed for events"):
            substitute_env_vars("${KAFKA_BROKER:?needed for events}", {})

    def test_environment_prefix_wins(self):
        merged = environment_overrides(
            "production",
            {"REDIS_URL": "redis://dev", "PRODUCTION_REDIS_URL": "redis://prod"},
        )

        assert merged["REDIS_URL"] == "redis://prod"


class TestLoadTemplatedYaml:
    def test_defaults(self, config_file: Path, clean_env: pytest.MonkeyPatch):
        config = load_templated_yaml(config_file, EnvironmentVariables())

        assert config.app.port == 8080
        assert config.app.environment == "development"
        assert config.logging.file is None
        assert config.redis.url is None
        assert config.cache.ttl_seconds == 0
        assert config.kafka.topic == "book_events"

    def test_environment_values(self, config_file: Path, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("PORT", "9000")
        clean_env.setenv("DATABASE_URL", "postgresql://books:secret@db:5432/books")
        clean_env.setenv("KAFKA_BROKER", "kafka:9092")
        clean_env.setenv("TEST_KAFKA_BROKER", "kafka-test:9092")
        clean_env.setenv("APP_ENVIRONMENT", "test")
        clean_env.setenv("LOG_LEVEL", "debug")

        config = load_templated_yaml(config_file, EnvironmentVariables())

        assert config.app.port == 9000
        assert config.app.environment == "test"
        assert config.logging.level == "DEBUG"
        assert config.database.url == "postgresql://books:secret@db:5432/books"
        assert config.kafka.bootstrap_servers == "kafka-test:9092"

    def test_redis_addr_fallback(self, config_file: Path, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("REDIS_ADDR", "cache:6379")

        config = load_templated_yaml(config_file, EnvironmentVariables())

        assert config.redis.url == "redis://cache:6379"

    def test_invalid_values_are_rejected(
        self, config_file: Path, clean_env: pytest.MonkeyPatch
    ):
        clean_env.setenv("BOOK_CACHE_TTL_SECONDS", "-1")

        with pytest.raises(ValueError, match="Invalid configuration"):
            load_templated_yaml(config_file, EnvironmentVariables())

    def test_missing_file(self, tmp_path: Path, clean_env: pytest.MonkeyPatch):
        with pytest.raises(FileNotFoundError):
            load_templated_yaml(tmp_path / "absent.yaml", EnvironmentVariables())


class TestConfigModels:
    def test_database_password_from_file(self, tmp_path: Path):
        secret = tmp_path / "db_password"
        secret.write_text("s3cret\n")

        config = DatabaseConfig(
            url="postgresql://books@db:5432/books", password_file=str(secret)
        )

        assert config.connection_string == "postgresql://books:s3cret@db:5432/books"

    def test_redis_password_is_injected_and_masked(self):
        config = RedisConfig(url="redis://cache:6379/0", password="hunter2")

        assert config.connection_string == "redis://:hunter2@cache:6379/0"
        assert "hunter2" not in config.sanitized_connection_string

    def test_redis_without_url(self):
        assert RedisConfig(url=None).connection_string == ""


class TestContext:
    def test_with_context_overrides_and_restores(self):
        original = get_config()
        override = ConfigData()
        override.cache.ttl_seconds = 60

        with with_context(override):
            assert get_config().cache.ttl_seconds == 60

        assert get_config() is original

    def test_with_context_rejects_other_types(self):
        with pytest.raises(ValueError):
            with with_context({"cache": {}}):
                pass
