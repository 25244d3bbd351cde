"""Tests for logging setup."""

from __future__ import annotations

import json
import logging
import sys
from typing import TYPE_CHECKING

import pytest

from tollgate.config.schema import LoggingConfig
from tollgate.core.logs import JSONLineFormatter, setup_logging

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _restore_logger() -> Iterator[None]:
    logger = logging.getLogger("tollgate")
    level = logger.level
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)


class TestSetupLogging:
    def test_level_and_handler(self):
        setup_logging(LoggingConfig(level="debug"))
        logger = logging.getLogger("tollgate")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_idempotent(self):
        setup_logging(LoggingConfig())
        setup_logging(LoggingConfig())
        assert len(logging.getLogger("tollgate").handlers) == 1

    def test_file_handler(self, tmp_path: Path):
        path = tmp_path / "logs" / "tollgate.log"
        setup_logging(LoggingConfig(file=str(path), structured=True))
        logging.getLogger("tollgate.test").warning("hello %s", "file")
        for handler in logging.getLogger("tollgate").handlers:
            handler.flush()
        line = path.read_text().strip()
        assert json.loads(line)["message"] == "hello file"


class TestJSONLineFormatter:
    def test_fields(self):
        record = logging.LogRecord(
            "tollgate.x", logging.INFO, __file__, 1, "paid %d", (3,), None
        )
        entry = json.loads(JSONLineFormatter().format(record))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "tollgate.x"
        assert entry["message"] == "paid 3"
        assert "ts" in entry

    def test_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "tollgate.x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )
        entry = json.loads(JSONLineFormatter().format(record))
        assert "RuntimeError: boom" in entry["exc"]
