"""
Central logging configuration for roomcal.

Keeps the expansion and layout modules quiet in production while allowing
per-module debug output when diagnosing a calendar that renders wrongly.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

ROOMCAL_MODULES = [
    "roomcal",
    "roomcal.recurrence_expander",
    "roomcal.event_layout",
    "roomcal.series_edits",
    "roomcal.view_ranges",
    "roomcal.config_manager",
    "roomcal.time_provider",
]

LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for roomcal modules.

    Args:
        debug_mode: Whether to enable debug logging for roomcal modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        ROOMCAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        ROOMCAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("ROOMCAL_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("ROOMCAL_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a handler if none exist, so host applications keep their setup
    if not root_logger.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setLevel(root_level)
        handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt="%H:%M:%S", log_colors=LOG_COLORS))
        root_logger.addHandler(handler)

    module_level = logging.DEBUG if final_debug else logging.INFO
    for module in ROOMCAL_MODULES:
        logging.getLogger(module).setLevel(module_level)

    if final_debug:
        root_logger.info("Debug logging enabled for roomcal modules")
    else:
        root_logger.info("Production logging configuration applied")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ROOMCAL_MODULES:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
