"""
Tests for src/utils/logging.py
"""

import pytest
from loguru import logger

from src.config.settings import LoggingSettings
from src.utils.logging import configure_logging


@pytest.fixture
def restore_sinks():
    yield
    logger.remove()


def test_configure_logging_writes_file_sink(tmp_path, restore_sinks):
    configure_logging(LoggingSettings(level="INFO", log_dir=str(tmp_path / "logs")))

    logger.info("broker started")
    logger.remove()

    files = list((tmp_path / "logs").glob("paper_broker_*.log"))
    assert len(files) == 1
    assert "broker started" in files[0].read_text()


def test_configure_logging_respects_level(capsys, restore_sinks):
    configure_logging(LoggingSettings(level="WARNING"))

    logger.info("hidden")
    logger.warning("shown")

    err = capsys.readouterr().err
    assert "shown" in err
    assert "hidden" not in err


def test_configure_logging_twice_does_not_duplicate(capsys, restore_sinks):
    configure_logging(LoggingSettings(level="INFO"))
    configure_logging(LoggingSettings(level="INFO"))

    logger.info("once")

    assert capsys.readouterr().err.count("once") == 1
