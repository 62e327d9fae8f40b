#!/usr/bin/env python3
"""
Mixer service backed by GNOME Shell's Gvc.MixerControl.

The Gvc typelib is private to gnome-shell, so its library directory has to be
added to the introspection search path before it can be loaded.
"""

import glob
import logging
from typing import Optional

import gi

from audio_selector_mixer import (
    Direction,
    MixerDevice,
    MixerEvent,
    MixerUnavailableError,
    signal_name,
)

GNOME_SHELL_LIBDIR_PATTERNS = [
    "/usr/lib64/gnome-shell",
    "/usr/lib/gnome-shell",
    "/usr/lib/*/gnome-shell",
]

logger = logging.getLogger(__name__)


def _search_repository():
    # PyGObject 3.52 moved to the GLib provided GIRepository 3.0, where the
    # search paths belong to the default repository instance
    if gi.version_info >= (3, 52):
        gi.require_version('GIRepository', '3.0')
        from gi.repository import GIRepository
        return GIRepository.Repository.dup_default()
    gi.require_version('GIRepository', '2.0')
    from gi.repository import GIRepository
    return GIRepository.Repository


def load_gvc():
    try:
        repository = _search_repository()
    except (ValueError, ImportError, AttributeError) as e:
        logger.warning(f"⚠️  Cannot extend typelib search path, trying system Gvc only: {e}")
        repository = None

    if repository is not None:
        for pattern in GNOME_SHELL_LIBDIR_PATTERNS:
            for path in glob.glob(pattern):
                repository.prepend_search_path(path)
                repository.prepend_library_path(path)

    try:
        gi.require_version('Gvc', '1.0')
        from gi.repository import Gvc
    except (ValueError, ImportError) as e:
        raise MixerUnavailableError(f"Gvc mixer control not available: {e}") from e
    return Gvc


class GvcMixerService:
    def __init__(self, application_name: str = "Audio Selector"):
        self.application_name = application_name
        self._control = None

    def open(self):
        Gvc = load_gvc()
        control = Gvc.MixerControl.new(self.application_name)
        if not control.open():
            raise MixerUnavailableError("Gvc mixer control failed to open")
        self._control = control
        logger.info(f"🔌 Connected to sound server via Gvc ({self.application_name})")

    def close(self):
        if self._control is None:
            return
        self._control.close()
        self._control = None
        logger.info("Disconnected from sound server")

    def subscribe(self, event: MixerEvent, direction: Direction, callback) -> int:
        return self._control.connect(signal_name(event, direction),
                                     lambda _control, device_id: callback(device_id))

    def unsubscribe(self, handle: int):
        self._control.disconnect(handle)

    def lookup_device(self, direction: Direction, device_id: int) -> Optional[MixerDevice]:
        if direction is Direction.INPUT:
            ui_device = self._control.lookup_input_id(device_id)
        else:
            ui_device = self._control.lookup_output_id(device_id)
        if ui_device is None:
            return None
        return MixerDevice(device_id, ui_device.get_description(), ui_device.get_origin() or None, ui_device)

    def change_active_device(self, direction: Direction, device: MixerDevice):
        if direction is Direction.INPUT:
            self._control.change_input(device.handle)
        else:
            self._control.change_output(device.handle)
