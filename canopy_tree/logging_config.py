from __future__ import annotations

"""Central logging configuration for Canopy Tree.

Import and call :func:`setup_logging` at application start-up.
"""

import copy
import logging
import logging.config
import os

from canopy_tree.config import ConfigManager

__all__ = ["setup_logging"]

_TRUTHY = {'1', 'true', 'yes', 'on'}

# Loggers switched to DEBUG by CANOPY_DEBUG_MOVES
_MOVE_LOGGERS = (
    'canopy_tree.core.services.move_service',
    'canopy_tree.ui.controllers.tree_controller',
)


def setup_logging() -> None:
    """Configure logging for the application using configuration from YAML files."""
    log_dir = os.environ.get("CANOPY_LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "app.log")

    try:
        logging_config = copy.deepcopy(ConfigManager().get_logging_config())

        if logging_config and isinstance(logging_config, dict) and logging_config.get("version"):
            # Update the filename dynamically
            if "handlers" in logging_config and "file" in logging_config["handlers"]:
                logging_config["handlers"]["file"]["filename"] = log_file

            logging.config.dictConfig(logging_config)
            logging.info("===== Logging initialised from config files =====")
        else:
            _setup_minimal_logging()
    except (ValueError, TypeError, AttributeError, ImportError, OSError) as exc:
        # dictConfig reports bad configurations through these
        print(f"Error loading logging config: {exc}")
        _setup_minimal_logging()

    _apply_debug_overrides()


def _setup_minimal_logging() -> None:
    """Set up console-only logging when config is unavailable."""
    minimal_config = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'simple': {
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            },
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'simple',
                'level': 'INFO',
            },
        },
        'root': {
            'level': 'INFO',
            'handlers': ['console'],
        },
    }

    logging.config.dictConfig(minimal_config)
    logging.error("===== Logging initialised with minimal fallback (config error) =====")


def _debug_targets() -> list:
    targets = []
    if os.environ.get('CANOPY_DEBUG_MOVES', '').strip().lower() in _TRUTHY:
        targets.extend(_MOVE_LOGGERS)
    extra_modules = os.environ.get('CANOPY_DEBUG_MODULES', '').strip()
    if extra_modules:
        targets.extend(m.strip() for m in extra_modules.split(',') if m.strip())
    return targets


def _apply_debug_overrides() -> None:
    """Apply environment-driven module-specific debug overrides.

    Supports:
    - CANOPY_DEBUG_MOVES=true  -> DEBUG for the move service and tree controller
    - CANOPY_DEBUG_MODULES=comma,separated,logger,names -> DEBUG for listed loggers
    """
    for name in _debug_targets():
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)
        # Ensure at least one handler emits DEBUG for this logger
        has_debug_handler = any(
            h.level == logging.NOTSET or h.level <= logging.DEBUG for h in logger.handlers
        )
        if not has_debug_handler:
            h = logging.StreamHandler()
            h.setLevel(logging.DEBUG)
            h.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
            logger.addHandler(h)
        logger.info("Debug override active for logger '%s'", name)
