"""Logging setup: Rich console for the terminal, JSON rotating files for the record."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from pythonjsonlogger.json import JsonFormatter  # type: ignore[import-untyped]
from rich.console import Console
from rich.logging import RichHandler

from ryaion.config import Settings

console = Console()

ALERTS_LOGGER = "ryaion.alerts"

# APScheduler logs every job run at INFO; with a tick every few seconds that drowns the console.
_NOISY_LOGGERS = {
    "apscheduler.executors.default": logging.WARNING,
    "apscheduler.scheduler": logging.WARNING,
    "aiosqlite": logging.INFO,
}


def _rotating_handler(
    path: Path, level: str | int, settings: Settings, formatter: logging.Formatter
) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(settings: Settings, *, cli_log_level: str | None = None) -> None:
    """Install the console handler plus JSON files: everything, errors only, and alerts.

    ``alerts.log`` is the audit trail of alert activity (armed, toggled,
    removed, fired) from the ``ryaion.alerts`` loggers, kept apart from
    the tick-by-tick noise in ``ryaion.log``.

    Args:
        settings: Provides log_dir, levels and rotation limits.
        cli_log_level: Overrides ``settings.log_level`` for the console only.
    """
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    console_level = (cli_log_level or settings.log_level).upper()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()

    console_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_time=True,
        show_path=False,
    )
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    json_formatter = JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s %(funcName)s %(lineno)d",
        rename_fields={"asctime": "timestamp", "levelname": "level"},
    )

    root.addHandler(console_handler)
    root.addHandler(
        _rotating_handler(
            settings.log_dir / "ryaion.log",
            settings.log_file_level.upper(),
            settings,
            json_formatter,
        )
    )
    root.addHandler(
        _rotating_handler(settings.log_dir / "error.log", logging.ERROR, settings, json_formatter)
    )

    alerts_logger = logging.getLogger(ALERTS_LOGGER)
    for handler in alerts_logger.handlers:
        handler.close()
    alerts_logger.handlers.clear()
    alerts_logger.addHandler(
        _rotating_handler(settings.log_dir / "alerts.log", logging.INFO, settings, json_formatter)
    )

    for name, level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
