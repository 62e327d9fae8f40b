#!/usr/bin/env python3
"""
Audio Selector configuration
============================

Loads config.toml from the application directory and merges it over the
built-in defaults. A missing or unreadable file leaves the defaults in place.
"""

import logging
import os

# Use the built-in tomllib in Python 3.11+, fallback to tomli
try:
    import tomllib
except ImportError:
    import tomli as tomllib

LOG_FORMAT = '[%(asctime)s] 🔊 %(levelname)s: %(message)s'
LOG_DATE_FORMAT = '%H:%M:%S'

CONFIG_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'config.toml')

logger = logging.getLogger(__name__)


def default_config() -> dict:
    return {
        "mixer": {
            "backend": "pactl",
            "application_name": "Audio Selector",
        },
        "settings": {
            "show_output_device_menu": True,
            "show_input_device_menu": True,
        },
        "logging": {
            "level": "INFO",
        },
    }


def load_config(path: str = CONFIG_PATH) -> dict:
    """Loads settings from config.toml, with hardcoded fallbacks."""
    defaults = default_config()
    try:
        with open(path, 'rb') as f:
            user_config = tomllib.load(f)
        # Deep merge user config into defaults
        for section, values in defaults.items():
            if isinstance(user_config.get(section), dict):
                values.update(user_config[section])
    except (IOError, tomllib.TOMLDecodeError) as e:
        logger.debug(f"Using default configuration ({path}: {e})")
    return defaults


def setup_logging(level: str = "INFO"):
    """Configure root logging once for an entry point."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    set_debug_level(level)


def set_debug_level(level: str):
    """Set debugging verbosity level."""
    levels = {'DEBUG': logging.DEBUG, 'INFO': logging.INFO, 'WARNING': logging.WARNING, 'ERROR': logging.ERROR}
    logging.getLogger().setLevel(levels.get(level.upper(), logging.INFO))
    logger.debug(f"Debug level set to: {level.upper()}")


CONFIG = load_config()
