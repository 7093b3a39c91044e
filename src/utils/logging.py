"""
Logging setup built on loguru.

Modules log through `from loguru import logger` directly; this module only
decides where the records go. Call `configure_logging()` once at process
start (main.py does); library code never configures sinks itself.
"""

import sys
from pathlib import Path

from loguru import logger

from src.config.settings import LoggingSettings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{line} | {message}"


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """
    Install the stderr sink and, when `settings.log_dir` is set, a rotating file sink.

    Any previously installed sinks (including loguru's default one) are removed,
    so calling this twice does not duplicate output.

    Args:
        settings: Logging settings. Defaults to LoggingSettings() (INFO, stderr only).
    """
    settings = settings or LoggingSettings()

    logger.remove()
    logger.add(sys.stderr, level=settings.level, format=LOG_FORMAT)

    if settings.log_dir:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_dir / "paper_broker_{time:YYYY-MM-DD}.log"),
            level=settings.level,
            format=LOG_FORMAT,
            rotation=settings.rotation,
            retention=settings.retention,
            enqueue=True,
        )

    logger.debug("Logging configured (level={}, log_dir={})", settings.level, settings.log_dir)
