"""Structlog-based logging configuration for pi-surveillance.

Progress lines go to the terminal with level-coloured prefixes and are
appended, uncoloured, to the setup log file. Modules keep logging through
the standard library; structlog renders both streams.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

import structlog

from pisurveillance.config.models import SurveillanceConfig


def _shared_processors() -> list:
    """Processors applied to every record before rendering."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="%H:%M:%S"),
    ]


def _build_formatter(colors: bool) -> structlog.stdlib.ProcessorFormatter:
    """Create a formatter rendering plain text lines."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=colors),
        ],
    )


def _configure_handlers(config: SurveillanceConfig) -> list[str]:
    """Attach the terminal and log-file handlers to the root logger.

    Returns:
        Warnings to report once logging is up
    """
    root_logger = logging.getLogger()
    log_level = getattr(logging, config.logging.level.upper(), logging.INFO)

    # Clear existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(_build_formatter(colors=True))
    root_logger.addHandler(console_handler)

    warnings = []
    log_file = Path(config.logging.log_file)
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    except OSError as e:
        warnings.append(f"Could not open setup log {log_file}: {e}")
    else:
        file_handler.setLevel(log_level)
        file_handler.setFormatter(_build_formatter(colors=False))
        root_logger.addHandler(file_handler)

    return warnings


def configure_structlog(config: SurveillanceConfig) -> None:
    """Configure structlog-based logging system.

    Args:
        config: The SurveillanceConfig instance containing logging settings.
    """
    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, config.logging.level.upper(), logging.INFO)
        ),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    warnings = _configure_handlers(config)

    logger = structlog.get_logger(__name__)
    logger.info(f"=== Surveillance Setup Started {datetime.now():%Y-%m-%d %H:%M:%S} ===")
    for warning in warnings:
        logger.warning(warning)

