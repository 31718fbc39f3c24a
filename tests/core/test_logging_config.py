"""Tests for logging configuration."""

import json
import logging

import pytest

from model_switch.core import logging_config
from model_switch.core.logging_config import JsonFormatter, configure_logging


@pytest.fixture(autouse=True)
def restore_root_logger(monkeypatch):
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    monkeypatch.setattr(logging_config, "_configured", False)
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJsonFormatter:
    def test_fields_and_extra(self):
        record = logging.LogRecord(
            "model_switch.gateway.proxy", logging.INFO, __file__, 1, "[%s] hi", ("0001",), None
        )
        record.provider = "glm"

        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "model_switch.gateway.proxy"
        assert data["message"] == "[0001] hi"
        assert data["extra"] == {"provider": "glm"}


class TestConfigureLogging:
    def test_level_from_argument(self):
        configure_logging(level="debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_env_overrides(self, monkeypatch, tmp_path):
        log_file = tmp_path / "gateway.log"
        monkeypatch.setenv("MODEL_SWITCH_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("MODEL_SWITCH_LOG_FORMAT", "json")
        monkeypatch.setenv("MODEL_SWITCH_LOG_FILE", str(log_file))

        configure_logging()

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 2
        assert all(isinstance(h.formatter, JsonFormatter) for h in root.handlers)

    def test_second_call_ignored_without_force(self):
        configure_logging(level="ERROR")
        configure_logging(level="DEBUG")
        assert logging.getLogger().level == logging.ERROR

        configure_logging(level="DEBUG", force=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_access_log_quiet_unless_debugging(self):
        access = logging.getLogger("aiohttp.access")
        access.setLevel(logging.NOTSET)

        configure_logging(level="DEBUG")
        assert access.level == logging.NOTSET

        configure_logging(level="INFO", force=True)
        assert access.level == logging.WARNING
        access.setLevel(logging.NOTSET)
