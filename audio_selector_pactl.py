#!/usr/bin/env python3
"""
Audio Selector pactl backend
============================

Mixer service on top of the pactl command line tool, so it works with both
PulseAudio and PipeWire (pipewire-pulse):
- Device lists from `pactl list sinks` / `pactl list sources`
- Default devices from `pactl info`
- Change notifications from a long running `pactl subscribe`
- Switching with `pactl set-default-sink` / `pactl set-default-source`
"""

import logging
import os
import re
import shlex
import subprocess
from typing import Dict, List, Optional, Tuple

from gi.repository import GLib, GObject

from audio_selector_mixer import (
    Direction,
    MixerDevice,
    MixerEvent,
    MixerUnavailableError,
    signal_name,
)

KINDS = {Direction.OUTPUT: "sink", Direction.INPUT: "source"}
DEFAULT_DEVICE_FIELDS = {Direction.OUTPUT: "Default Sink:", Direction.INPUT: "Default Source:"}
DEFAULT_DEVICE_NAMES = {Direction.OUTPUT: "@DEFAULT_SINK@", Direction.INPUT: "@DEFAULT_SOURCE@"}

# "analog-output-speaker: Speakers (type: Speaker, priority: 10000, ...)"
PORT_RE = re.compile(r'^(.+?): (.+?) \((?:type|priority)')
EVENT_RE = re.compile(r"^Event '(\w+)' on ([\w-]+) #(-?\d+)$")
VOLUME_RE = re.compile(r'/\s*(\d+)%')

logger = logging.getLogger(__name__)


def run_cmd(cmd: str) -> Tuple[int, str, str]:
    """Execute a command and return (exit_code, stdout, stderr)."""
    logger.debug(f"Running command: {cmd}")
    try:
        # pactl translates its field names, parsing needs the C locale
        proc = subprocess.run(shlex.split(cmd), capture_output=True, text=True, check=False,
                              env={**os.environ, 'LC_ALL': 'C'})
    except FileNotFoundError:
        return -1, "", f"Command not found: {cmd.split()[0]}"
    if proc.returncode != 0:
        logger.debug(f"Command failed (exit {proc.returncode}): {cmd}")
    return proc.returncode, proc.stdout.strip(), proc.stderr.strip()


def _to_device(block: dict) -> Optional[MixerDevice]:
    name = block["name"]
    if not name:
        return None
    description = block["description"] or name
    port_description = block["ports"].get(block["active_port"])
    if port_description:
        return MixerDevice(block["id"], port_description, description, name)
    return MixerDevice(block["id"], description, None, name)


def parse_devices(text: str, kind: str) -> Dict[int, MixerDevice]:
    """
    Parses `pactl list sinks|sources` into id -> MixerDevice.
    Devices with ports are described by their active port, with the
    sink/source description as origin. Monitor sources are skipped.
    """
    header = f"{kind.capitalize()} #"
    blocks: List[dict] = []
    current = None
    in_ports = False

    for line in text.splitlines():
        if line.startswith(header):
            current = {"id": int(line[len(header):].strip()), "name": "", "description": "",
                       "ports": {}, "active_port": None}
            blocks.append(current)
            in_ports = False
            continue
        if current is None:
            continue

        stripped = line.strip()
        if line.startswith('\t\t'):
            if in_ports and (m := PORT_RE.match(stripped)):
                current["ports"][m.group(1)] = m.group(2)
            continue

        in_ports = stripped == 'Ports:'
        if stripped.startswith('Name:'):
            current["name"] = stripped.split('Name:', 1)[1].strip()
        elif stripped.startswith('Description:'):
            current["description"] = stripped.split('Description:', 1)[1].strip()
        elif stripped.startswith('Active Port:'):
            current["active_port"] = stripped.split('Active Port:', 1)[1].strip()

    devices = {}
    for block in blocks:
        if kind == "source" and block["name"].endswith(".monitor"):
            continue
        if device := _to_device(block):
            devices[device.id] = device
    return devices


def parse_default_devices(info: str) -> Dict[Direction, Optional[str]]:
    """Reads the default sink and source names out of `pactl info`."""
    defaults: Dict[Direction, Optional[str]] = {d: None for d in Direction}
    for line in info.splitlines():
        line = line.strip()
        for direction, field in DEFAULT_DEVICE_FIELDS.items():
            if line.startswith(field):
                defaults[direction] = line.split(field, 1)[1].strip() or None
    return defaults


def parse_subscribe_event(line: str) -> Optional[Tuple[str, str, int]]:
    """Event 'new' on sink #52 -> ('new', 'sink', 52)"""
    m = EVENT_RE.match(line.strip())
    if not m:
        return None
    return m.group(1), m.group(2), int(m.group(3))


def get_default_volume(direction: Direction) -> Optional[int]:
    """Volume of the default sink/source in percent (first channel)."""
    code, out, _ = run_cmd(f"pactl get-{KINDS[direction]}-volume {DEFAULT_DEVICE_NAMES[direction]}")
    if code != 0:
        return None
    m = VOLUME_RE.search(out)
    return int(m.group(1)) if m else None


def set_default_volume(direction: Direction, percent: int):
    code, _, err = run_cmd(f"pactl set-{KINDS[direction]}-volume {DEFAULT_DEVICE_NAMES[direction]} {int(percent)}%")
    if code != 0:
        logger.error(f"Could not set {KINDS[direction]} volume: {err}")


class PactlMixerService(GObject.Object):
    __gsignals__ = {
        signal_name(event, direction): (GObject.SignalFlags.RUN_FIRST, None, (int,))
        for event in MixerEvent
        for direction in Direction
    }

    def __init__(self, application_name: str = "Audio Selector"):
        super().__init__()
        self.application_name = application_name
        self._devices: Dict[Direction, Dict[int, MixerDevice]] = {d: {} for d in Direction}
        self._active: Dict[Direction, Optional[int]] = {d: None for d in Direction}
        self._subscriber: Optional[subprocess.Popen] = None
        self._pending = ""
        self._watch_id: Optional[int] = None
        self._announce_id: Optional[int] = None
        self.is_open = False

    def open(self):
        code, _, err = run_cmd("pactl info")
        if code != 0:
            raise MixerUnavailableError(err or "pactl info failed")

        try:
            self._subscriber = subprocess.Popen(['pactl', 'subscribe'], stdout=subprocess.PIPE,
                                                stderr=subprocess.DEVNULL,
                                                env={**os.environ, 'LC_ALL': 'C'})
        except OSError as e:
            raise MixerUnavailableError(f"Cannot start pactl subscribe: {e}") from e

        self._watch_id = GLib.io_add_watch(self._subscriber.stdout, GLib.PRIORITY_DEFAULT,
                                           GLib.IOCondition.IN | GLib.IOCondition.HUP,
                                           self._on_subscriber_output)
        # Existing devices are announced from the main loop, after the
        # menus created right after open() have subscribed
        self._announce_id = GLib.idle_add(self.announce_devices)
        self.is_open = True
        logger.info(f"🔌 Connected to sound server via pactl ({self.application_name})")

    def close(self):
        if not self.is_open:
            return
        for source_id in (self._watch_id, self._announce_id):
            if source_id is not None:
                GLib.source_remove(source_id)
        self._watch_id = self._announce_id = None

        if self._subscriber:
            self._subscriber.terminate()
            try:
                self._subscriber.wait(timeout=2)
            except subprocess.TimeoutExpired:
                self._subscriber.kill()
                self._subscriber.wait()
            self._subscriber.stdout.close()
            self._subscriber = None

        self._pending = ""
        self._devices = {d: {} for d in Direction}
        self._active = {d: None for d in Direction}
        self.is_open = False
        logger.info("Disconnected from sound server")

    def subscribe(self, event: MixerEvent, direction: Direction, callback) -> int:
        return self.connect(signal_name(event, direction), lambda _mixer, device_id: callback(device_id))

    def unsubscribe(self, handle: int):
        self.disconnect(handle)

    def lookup_device(self, direction: Direction, device_id: int) -> Optional[MixerDevice]:
        return self._devices[direction].get(device_id)

    def change_active_device(self, direction: Direction, device: MixerDevice):
        kind = KINDS[direction]
        code, _, err = run_cmd(f"pactl set-default-{kind} {shlex.quote(device.handle)}")
        if code != 0:
            logger.error(f"Could not set default {kind} to {device.handle}: {err}")

    def query_devices(self, direction: Direction) -> Optional[Dict[int, MixerDevice]]:
        kind = KINDS[direction]
        code, out, err = run_cmd(f"pactl list {kind}s")
        if code != 0:
            logger.error(f"Could not list {kind}s: {err}")
            return None
        return parse_devices(out, kind)

    def announce_devices(self):
        """Emit an added event for every present device, then the active devices."""
        self._announce_id = None
        for direction in Direction:
            devices = self.query_devices(direction)
            if devices is None:
                continue
            self._devices[direction] = devices
            for device_id in sorted(devices):
                self.emit(signal_name(MixerEvent.DEVICE_ADDED, direction), device_id)
        self._active = {d: None for d in Direction}
        self.sync_active()
        return GLib.SOURCE_REMOVE

    def sync_devices(self, direction: Direction):
        devices = self.query_devices(direction)
        if devices is None:
            return
        old = self._devices[direction]
        self._devices[direction] = devices

        for device_id in sorted(old.keys() - devices.keys()):
            if self._active[direction] == device_id:
                self._active[direction] = None
            self.emit(signal_name(MixerEvent.DEVICE_REMOVED, direction), device_id)
        # A port switch keeps the id but changes the label
        for device_id in sorted(old.keys() & devices.keys()):
            if old[device_id].label == devices[device_id].label:
                continue
            self.emit(signal_name(MixerEvent.DEVICE_REMOVED, direction), device_id)
            self.emit(signal_name(MixerEvent.DEVICE_ADDED, direction), device_id)
            if self._active[direction] == device_id:
                self.emit(signal_name(MixerEvent.ACTIVE_CHANGED, direction), device_id)
        for device_id in sorted(devices.keys() - old.keys()):
            self.emit(signal_name(MixerEvent.DEVICE_ADDED, direction), device_id)

    def sync_active(self):
        code, out, err = run_cmd("pactl info")
        if code != 0:
            logger.error(f"Could not read default devices: {err}")
            return

        for direction, name in parse_default_devices(out).items():
            if name is None:
                continue
            device_id = self._find_id(direction, name)
            if device_id is None:
                # Default moved to a device we have not seen yet
                self.sync_devices(direction)
                device_id = self._find_id(direction, name)
            if device_id is not None and device_id != self._active[direction]:
                self._active[direction] = device_id
                self.emit(signal_name(MixerEvent.ACTIVE_CHANGED, direction), device_id)

    def _find_id(self, direction: Direction, name: str) -> Optional[int]:
        return next((d.id for d in self._devices[direction].values() if d.handle == name), None)

    def handle_event(self, line: str):
        event = parse_subscribe_event(line)
        if event is None or self._announce_id is not None:
            return
        action, facility, _ = event

        if facility in ("sink", "source") and action in ("new", "remove", "change"):
            direction = Direction.OUTPUT if facility == "sink" else Direction.INPUT
            self.sync_devices(direction)
        elif facility == "server" and action == "change":
            self.sync_active()

    def _on_subscriber_output(self, source, condition):
        data = b""
        if condition & GLib.IOCondition.IN:
            data = os.read(self._subscriber.stdout.fileno(), 4096)
        if not data:
            logger.warning("pactl subscribe stopped, device list will no longer update")
            self._watch_id = None
            return GLib.SOURCE_REMOVE

        self._pending += data.decode(errors='replace')
        *lines, self._pending = self._pending.split('\n')
        for line in lines:
            self.handle_event(line)
        return GLib.SOURCE_CONTINUE
