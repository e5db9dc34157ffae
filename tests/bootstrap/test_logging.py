"""Structured logging setup tests."""

from __future__ import annotations

import gzip
import json
import logging
import os
import time

from PlatformKit.Bootstrap.logging_config import (
    LOGGER_NAME,
    JSONFormatter,
    _cleanup_logs,
    mask_sensitive_data,
    setup_logging,
)
from PlatformKit.Bootstrap.settings import LoggingSettings


def _managed_handlers(logger):
    return [handler for handler in logger.handlers if getattr(handler, "_platformkit_managed", False)]


def test_mask_sensitive_data_handles_nested_attributes():
    payload = {"bin": "pages", "options": {"@password": "hunter2", "host": "db"}, "Token": "x"}

    assert mask_sensitive_data(payload) == {
        "bin": "pages",
        "options": {"@password": "***masked***", "host": "db"},
        "Token": "***masked***",
    }


def test_json_formatter_includes_extra_fields():
    record = logging.makeLogRecord(
        {
            "name": "PlatformKit.Bootstrap.cache",
            "levelname": "INFO",
            "msg": "cache provider registered",
            "stage": "cache",
            "bin": "pages",
            "api_key": "secret",
        }
    )

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "cache provider registered"
    assert payload["stage"] == "cache"
    assert payload["bin"] == "pages"
    assert payload["api_key"] == "***masked***"
    assert payload["timestamp"].endswith("Z")


def test_setup_logging_console_only():
    logger = setup_logging(LoggingSettings(level="DEBUG"))

    assert logger.name == LOGGER_NAME
    assert logger.level == logging.DEBUG
    assert len(_managed_handlers(logger)) == 1


def test_setup_logging_writes_json_lines(tmp_path):
    logger = setup_logging(LoggingSettings(level="INFO", log_dir=tmp_path))
    logging.getLogger(f"{LOGGER_NAME}.handler").info(
        "handler started", extra={"stage": "run", "handler": "web"}
    )
    for handler in logger.handlers:
        handler.flush()

    (log_file,) = tmp_path.glob("platformkit-*.jsonl")
    line = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
    assert line["message"] == "handler started"
    assert line["stage"] == "run"
    assert line["handler"] == "web"


def test_setup_logging_is_idempotent(tmp_path):
    setup_logging(LoggingSettings(), log_dir=tmp_path)
    logger = setup_logging(LoggingSettings(), log_dir=tmp_path)

    assert len(_managed_handlers(logger)) == 2


def test_cleanup_compresses_then_expires_old_logs(tmp_path):
    old = tmp_path / "platformkit-20000101.jsonl"
    old.write_text('{"message": "old"}\n', encoding="utf-8")
    expired = tmp_path / "platformkit-19990101.jsonl.gz"
    with gzip.open(expired, "wb") as handle:
        handle.write(b"{}\n")
    fresh = tmp_path / "platformkit-current.jsonl"
    fresh.write_text("{}\n", encoding="utf-8")
    ten_days_ago = time.time() - 10 * 86400
    os.utime(old, (ten_days_ago, ten_days_ago))
    thirty_days_ago = time.time() - 30 * 86400
    os.utime(expired, (thirty_days_ago, thirty_days_ago))

    _cleanup_logs(tmp_path, retention_days=7)

    assert not old.exists()
    assert (tmp_path / "platformkit-20000101.jsonl.gz").exists()
    assert not expired.exists()
    assert fresh.exists()
