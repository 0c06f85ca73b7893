"""
Unit tests for settings and logging setup.
"""

import io
import json
import logging

import pytest
from pydantic import ValidationError

from docschema.config import LogFormat, Settings, StorageBackend
from docschema.logging_config import setup_logging


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch):
        for name in ("STORAGE_BACKEND", "VALIDATE_SCHEMAS", "LOG_FORMAT", "STORAGE_TIMEOUT_SECONDS"):
            monkeypatch.delenv(f"DOCSCHEMA_{name}", raising=False)
        settings = Settings()

        assert settings.storage_backend == StorageBackend.MEMORY
        assert settings.validate_schemas is True
        assert settings.schema_base_uri == "https://schemas.documentation-system.org"
        assert settings.storage_timeout_seconds == 5.0
        assert settings.log_format == LogFormat.TEXT

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("DOCSCHEMA_STORAGE_BACKEND", "sqlite")
        monkeypatch.setenv("DOCSCHEMA_SQLITE_PATH", "/tmp/reg.db")
        monkeypatch.setenv("DOCSCHEMA_VALIDATE_SCHEMAS", "false")

        settings = Settings()

        assert settings.storage_backend == StorageBackend.SQLITE
        assert settings.sqlite_path == "/tmp/reg.db"
        assert settings.validate_schemas is False

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(storage_timeout_seconds=0)


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_text(self):
        setup_logging(Settings(log_level="debug"))
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1

    def test_json_level_fallback(self):
        setup_logging(Settings(log_format=LogFormat.JSON, log_level="nonsense"))
        assert logging.getLogger().level == logging.INFO

    def test_json_lines_parse_and_carry_extra(self):
        setup_logging(Settings(log_format=LogFormat.JSON))
        stream = io.StringIO()
        logging.getLogger().handlers[0].setStream(stream)

        logger = logging.getLogger("docschema.registry.registry")
        logger.info('Custom validator raised at "name"', extra={"schema_id": "docs.user", "version": "1"})
        logger.warning("second line")

        lines = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert len(lines) == 2
        assert lines[0]["message"] == 'Custom validator raised at "name"'
        assert lines[0]["schema_id"] == "docs.user"
        assert lines[0]["version"] == "1"
        assert lines[0]["levelname"] == "INFO"
        assert lines[0]["name"] == "docschema.registry.registry"
        assert lines[1]["levelname"] == "WARNING"
