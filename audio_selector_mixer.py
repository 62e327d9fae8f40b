#!/usr/bin/env python3
"""
Mixer service interface shared by the device menus and the mixer backends.

Signal names follow the GNOME mixer control: ``output-added``,
``output-removed``, ``active-output-update`` and their ``input`` twins, each
carrying the integer id of the device.
"""

from enum import Enum
from typing import Any, Callable, NamedTuple, Optional, Protocol


class Direction(Enum):
    INPUT = "in"
    OUTPUT = "out"


class MixerEvent(Enum):
    DEVICE_ADDED = "{}put-added"
    DEVICE_REMOVED = "{}put-removed"
    ACTIVE_CHANGED = "active-{}put-update"


def signal_name(event: MixerEvent, direction: Direction) -> str:
    return event.value.format(direction.value)


class MixerDevice(NamedTuple):
    id: int
    description: str
    origin: Optional[str] = None
    handle: Any = None

    @property
    def label(self) -> str:
        if self.origin:
            return f"{self.description} - {self.origin}"
        return self.description


class HostInconsistencyError(LookupError):
    """The mixer reported a device id that cannot be resolved."""


class MixerUnavailableError(RuntimeError):
    """No connection to the sound server could be opened."""


class MixerService(Protocol):
    def open(self) -> None:
        ...

    def close(self) -> None:
        ...

    def subscribe(self, event: MixerEvent, direction: Direction, callback: Callable[[int], None]) -> int:
        ...

    def unsubscribe(self, handle: int) -> None:
        ...

    def lookup_device(self, direction: Direction, device_id: int) -> Optional[MixerDevice]:
        ...

    def change_active_device(self, direction: Direction, device: MixerDevice) -> None:
        ...
