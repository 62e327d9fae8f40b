#!/usr/bin/env python3
"""
Persistent settings for the audio selector.

Two boolean flags decide which device menus are shown. They are exposed as
GObject properties so preference widgets can be bound to them in both
directions, and they are saved to a JSON file in the user's config dir.
"""

import json
import logging
import os
from typing import Dict, Optional

from gi.repository import GLib, GObject

from audio_selector_config import CONFIG

SHOW_OUTPUT_DEVICE_MENU = "show-output-device-menu"
SHOW_INPUT_DEVICE_MENU = "show-input-device-menu"
KEYS = (SHOW_OUTPUT_DEVICE_MENU, SHOW_INPUT_DEVICE_MENU)

logger = logging.getLogger(__name__)


def settings_path() -> str:
    return os.path.join(GLib.get_user_config_dir(), 'audio-selector', 'settings.json')


def default_settings(config: Optional[dict] = None) -> Dict[str, bool]:
    section = (config or CONFIG)["settings"]
    return {key: bool(section.get(key.replace('-', '_'), True)) for key in KEYS}


def load_settings(path: str, defaults: Dict[str, bool]) -> Dict[str, bool]:
    """
    Loads the flags from JSON, validating each value.
    If the file doesn't exist, is corrupt, or a value is invalid,
    it falls back to the defaults from config.toml.
    """
    if not os.path.exists(path):
        logger.debug(f"No settings file at {path}. Using defaults.")
        return dict(defaults)

    try:
        with open(path, 'r') as f:
            loaded_settings = json.load(f)
    except (IOError, json.JSONDecodeError) as e:
        logger.error(f"Error loading or parsing {path}: {e}. Using defaults.")
        return dict(defaults)

    if not isinstance(loaded_settings, dict):
        logger.warning(f"Unexpected content in {path}. Using defaults.")
        return dict(defaults)

    validated_settings = {}
    for key, default_value in defaults.items():
        loaded_value = loaded_settings.get(key)
        if isinstance(loaded_value, bool):
            validated_settings[key] = loaded_value
        else:
            logger.warning(f"Invalid or missing value for '{key}'. Using default.")
            validated_settings[key] = default_value
    return validated_settings


def save_settings(path: str, settings: Dict[str, bool]):
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w') as f:
            json.dump(settings, f, indent=4)
        logger.debug(f"Settings saved to {path}")
    except IOError as e:
        logger.error(f"Error saving settings: {e}")


class SelectorSettings(GObject.Object):
    """Key-value store for the two menu flags.

    Emits ``changed`` with the key whenever a flag takes a new value, whether
    it was set through :meth:`set_boolean` or through a bound widget.
    """

    __gsignals__ = {
        'changed': (GObject.SignalFlags.RUN_FIRST, None, (str,)),
    }

    show_output_device_menu = GObject.Property(type=bool, default=True)
    show_input_device_menu = GObject.Property(type=bool, default=True)

    def __init__(self, path: Optional[str] = None, defaults: Optional[Dict[str, bool]] = None):
        super().__init__()
        self.path = path or settings_path()
        values = load_settings(self.path, defaults or default_settings())
        for key, value in values.items():
            self.set_property(key, value)
        self._persisted = dict(values)
        self.connect('notify', self._on_notify)

    def get_boolean(self, key: str) -> bool:
        self._check_key(key)
        return self.get_property(key)

    def set_boolean(self, key: str, value: bool):
        self._check_key(key)
        self.set_property(key, value)

    def bind(self, key: str, target: GObject.Object, target_property: str) -> GObject.Binding:
        """Bind a flag to a widget property, both ways, widget starting from the stored value."""
        self._check_key(key)
        flags = GObject.BindingFlags.SYNC_CREATE | GObject.BindingFlags.BIDIRECTIONAL
        return self.bind_property(key, target, target_property, flags)

    def _check_key(self, key: str):
        if key not in KEYS:
            raise KeyError(f"Unknown settings key: {key}")

    def _on_notify(self, obj, pspec):
        key = pspec.name
        if key not in KEYS:
            return
        value = self.get_property(key)
        if self._persisted.get(key) == value:
            return
        self._persisted[key] = value
        save_settings(self.path, self._persisted)
        logger.info(f"Setting '{key}' changed to {value}")
        self.emit('changed', key)
