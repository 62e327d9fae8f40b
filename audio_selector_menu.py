#!/usr/bin/env python3
"""
Device menu for one audio direction.

The menu keeps a map of device id -> label in sync with the mixer service.
The mixer announces every device that is already present right after the
menu subscribes, before the first active-device update, so no explicit
enumeration is done here: the registry is built from the event stream alone.
"""

import logging
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Tuple

from gi.repository import GLib

from audio_selector_mixer import (
    Direction,
    HostInconsistencyError,
    MixerEvent,
    MixerService,
)

INITIALIZING_TEXT = "Initializing..."

logger = logging.getLogger(__name__)


class MenuView(Protocol):
    def set_label(self, text: str) -> None:
        ...

    def remove_all(self) -> None:
        ...

    def add_item(self, label: str, on_activate: Callable[[], None]) -> None:
        ...


class DeviceRegistry:
    """Device id -> display label for the devices the mixer reports present."""

    def __init__(self):
        self.devices: Dict[int, str] = {}
        self.active_id: Optional[int] = None

    def add(self, device_id: int, label: str):
        self.devices[device_id] = label

    def remove(self, device_id: int):
        self.devices.pop(device_id, None)

    def label_for(self, device_id: int) -> str:
        try:
            return self.devices[device_id]
        except KeyError:
            raise HostInconsistencyError(f"Device #{device_id} was never added") from None

    def clear(self):
        self.devices.clear()
        self.active_id = None

    def sorted_entries(self) -> List[Tuple[int, str]]:
        # Locale aware, id as tie breaker so equal labels keep a stable order
        return sorted(self.devices.items(), key=lambda entry: (GLib.utf8_collate_key(entry[1], -1), entry[0]))

    def __iter__(self) -> Iterator[Tuple[int, str]]:
        return iter(self.sorted_entries())

    def __len__(self) -> int:
        return len(self.devices)


class DeviceMenu:
    """Selectable list of the devices of one direction plus an active-device label."""

    def __init__(self, mixer: MixerService, direction: Direction, view: MenuView):
        self.mixer = mixer
        self.direction = direction
        self.view = view
        self.registry = DeviceRegistry()
        self.is_initialized = False
        self.is_disabled = False

        self.view.set_label(INITIALIZING_TEXT)

        self._subscriptions = [
            mixer.subscribe(MixerEvent.DEVICE_ADDED, direction, self.on_device_added),
            mixer.subscribe(MixerEvent.DEVICE_REMOVED, direction, self.on_device_removed),
            mixer.subscribe(MixerEvent.ACTIVE_CHANGED, direction, self.on_active_changed),
        ]

    def on_device_added(self, device_id: int):
        if self.is_disabled:
            return
        device = self.mixer.lookup_device(self.direction, device_id)
        if device is None:
            raise HostInconsistencyError(f"Mixer cannot resolve {self.direction.value}put device #{device_id}")

        self.registry.add(device_id, device.label)
        logger.debug(f"{self.direction.value}put device added: #{device_id} {device.label}")

        if self.is_initialized:
            self.rebuild_menu()

    def on_device_removed(self, device_id: int):
        if self.is_disabled:
            return
        self.registry.remove(device_id)
        logger.debug(f"{self.direction.value}put device removed: #{device_id}")
        self.rebuild_menu()

    def on_active_changed(self, device_id: int):
        if self.is_disabled:
            return
        label = self.registry.label_for(device_id)
        self.registry.active_id = device_id
        self.view.set_label(label)
        logger.debug(f"Active {self.direction.value}put device: #{device_id} {label}")

        if not self.is_initialized:
            self.rebuild_menu()
            self.is_initialized = True

    def rebuild_menu(self):
        self.view.remove_all()
        for device_id, label in self.registry:
            self.view.add_item(label, self._activate_callback(device_id))

    def _activate_callback(self, device_id: int) -> Callable[[], None]:
        def activate():
            device = self.mixer.lookup_device(self.direction, device_id)
            if device is None:
                raise HostInconsistencyError(f"Mixer cannot resolve {self.direction.value}put device #{device_id}")
            logger.info(f"Switching {self.direction.value}put to: {device.label}")
            self.mixer.change_active_device(self.direction, device)
        return activate

    def disable(self):
        """Release the mixer subscriptions. The menu is dead afterwards."""
        if self.is_disabled:
            return
        for handle in self._subscriptions:
            self.mixer.unsubscribe(handle)
        self._subscriptions = []
        self.registry.clear()
        self.is_initialized = False
        self.is_disabled = True
