"""Tests for the logging setup shared by the API app and the engine runner."""

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest
import structlog

from dispatch.utils.logging import bind_request_context, clear_request_context, configure_logging


@pytest.fixture()
def configure(monkeypatch, tmp_path):
    """Configure logging into ``tmp_path`` and undo it afterwards."""
    root = logging.getLogger()
    level = root.level
    installed = []
    monkeypatch.delenv("LOG_LEVEL", raising=False)

    def _configure(env):
        configure_logging(env=env, log_dir=tmp_path)
        installed.extend(root.handlers)
        return root

    yield _configure

    for handler in installed:
        handler.close()
    root.handlers = [h for h in root.handlers if h not in installed]
    root.setLevel(level)
    clear_request_context()
    structlog.reset_defaults()


class TestConfigureLogging:
    def test_rotating_files_are_created(self, configure):
        root = configure("production")

        assert root.level == logging.INFO
        files = sorted(Path(h.baseFilename).name for h in root.handlers if isinstance(h, RotatingFileHandler))
        assert files == ["dispatch.log", "dispatch_error.log"]

    def test_level_follows_environment(self, configure):
        assert configure("test").level == logging.WARNING

    def test_log_level_variable_wins(self, configure, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert configure("development").level == logging.ERROR

    def test_production_lines_are_json_with_request_context(self, configure, tmp_path):
        root = configure("production")
        bind_request_context(path="/orders", user_id="cust-1")

        structlog.get_logger("dispatch.checks").warning("Order placed", order_id="ord-1")
        for handler in root.handlers:
            handler.flush()

        record = json.loads((tmp_path / "dispatch.log").read_text().strip().splitlines()[-1])
        assert record["event"] == "Order placed"
        assert record["order_id"] == "ord-1"
        assert record["path"] == "/orders"
        assert record["user_id"] == "cust-1"
        assert record["level"] == "warning"
