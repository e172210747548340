"""Structured logging configuration."""

import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger

# Bound context keys shown on the console line, e.g. "[edge/open-editor]"
SCOPE_KEYS = ("provider", "scene_id")


def _add_scope(record: dict) -> None:
    extra = record["extra"]
    parts = [str(extra[key]) for key in SCOPE_KEYS if extra.get(key)]
    extra["scope"] = f" [{'/'.join(parts)}]" if parts else ""


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """
    Configure structured logging with console and file output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path to log file
        rotation: Log rotation size
        retention: Log retention period
    """
    logger.remove()

    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
            "<cyan>{extra[name]}</cyan>{extra[scope]} | <level>{message}</level>"
        ),
        level=log_level.upper(),
        colorize=True,
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message} | {extra}",
            level=log_level.upper(),
            rotation=rotation,
            retention=retention,
            compression="zip",
        )


def get_logger(name: str, **context: Any) -> Any:
    """
    Get a logger bound to a component name.

    Args:
        name: Logger name (typically __name__)
        **context: Extra fields to bind (out_dir, provider, scene_id, ...)

    Returns:
        Logger instance with bound context
    """
    return logger.bind(name=name, **context)


logger.configure(extra={"name": "scenecast", "scope": ""}, patcher=_add_scope)

# Initialize logging on import
setup_logging()
