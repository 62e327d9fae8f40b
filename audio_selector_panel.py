#!/usr/bin/env python3
"""
Audio Selector panel
====================

Small Gtk 4 window hosting the volume controls and the device menus:
- Output volume slider, followed by the device menus
- Input volume slider
- Preferences button in the header bar
"""

import logging
import sys
from typing import Any, Callable, List

import gi

gi.require_version('Gtk', '4.0')
gi.require_version('Adw', '1')
from gi.repository import Adw, Gtk

from audio_selector_config import CONFIG, setup_logging
from audio_selector_extension import AudioSelectorExtension
from audio_selector_menu import INITIALIZING_TEXT
from audio_selector_mixer import Direction
from audio_selector_pactl import get_default_volume, set_default_volume
from audio_selector_prefs import create_preferences_window
from audio_selector_settings import SelectorSettings

APP_ID = "org.audioselector.Panel"

ICONS = {
    Direction.OUTPUT: "audio-speakers-symbolic",
    Direction.INPUT: "audio-input-microphone-symbolic",
}

logger = logging.getLogger(__name__)


class GtkDeviceMenuView(Gtk.Box):
    """Menu button showing the active device, its popover lists all devices."""

    def __init__(self, direction: Direction):
        super().__init__(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
        self.direction = direction

        self.list_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=2)
        self.popover = Gtk.Popover()
        self.popover.set_child(self.list_box)

        self.menu_button = Gtk.MenuButton(label=INITIALIZING_TEXT, popover=self.popover)
        self.menu_button.set_hexpand(True)

        self.append(Gtk.Image.new_from_icon_name(ICONS[direction]))
        self.append(self.menu_button)

    def set_label(self, text: str):
        self.menu_button.set_label(text)

    def remove_all(self):
        child = self.list_box.get_first_child()
        while child is not None:
            next_child = child.get_next_sibling()
            self.list_box.remove(child)
            child = next_child

    def add_item(self, label: str, on_activate: Callable[[], None]):
        button = Gtk.Button(label=label)
        button.add_css_class("flat")
        button.connect("clicked", self._on_item_clicked, on_activate)
        self.list_box.append(button)

    def _on_item_clicked(self, button: Gtk.Button, on_activate: Callable[[], None]):
        self.popover.popdown()
        on_activate()


class AudioSelectorWindow(Gtk.ApplicationWindow):
    def __init__(self, app: Gtk.Application, settings: SelectorSettings):
        super().__init__(application=app, title="Audio Selector")
        self.set_default_size(380, -1)
        self.settings = settings

        header = Gtk.HeaderBar()
        prefs_btn = Gtk.Button.new_from_icon_name("preferences-system-symbolic")
        prefs_btn.set_tooltip_text("Preferences")
        prefs_btn.connect("clicked", self.on_preferences_clicked)
        header.pack_end(prefs_btn)
        self.set_titlebar(header)

        self.menu_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=10)
        self.menu_box.set_margin_top(15)
        self.menu_box.set_margin_bottom(15)
        self.menu_box.set_margin_start(15)
        self.menu_box.set_margin_end(15)
        self.set_child(self.menu_box)

        self._items: List[Any] = []
        self.output_volume_item = self._create_volume_row(Direction.OUTPUT)
        self.input_volume_item = self._create_volume_row(Direction.INPUT)
        for item in (self.output_volume_item, self.input_volume_item):
            self.insert_menu_item(item, len(self._items))

    def _create_volume_row(self, direction: Direction) -> Gtk.Box:
        volume = get_default_volume(direction)
        adj = Gtk.Adjustment(value=volume if volume is not None else 100, lower=0, upper=150,
                             step_increment=1, page_increment=10)
        scale = Gtk.Scale(orientation=Gtk.Orientation.HORIZONTAL, adjustment=adj, draw_value=True, digits=0)
        scale.set_hexpand(True)
        adj.connect("value-changed", self.on_volume_changed, direction)

        row = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
        row.append(Gtk.Image.new_from_icon_name(ICONS[direction]))
        row.append(scale)
        return row

    def menu_items(self) -> List[Any]:
        return list(self._items)

    def insert_menu_item(self, item: Gtk.Widget, position: int):
        sibling = self._items[position - 1] if position > 0 else None
        self.menu_box.insert_child_after(item, sibling)
        self._items.insert(position, item)

    def remove_menu_item(self, item: Gtk.Widget):
        self.menu_box.remove(item)
        self._items.remove(item)

    def on_volume_changed(self, adj: Gtk.Adjustment, direction: Direction):
        set_default_volume(direction, int(adj.get_value()))

    def on_preferences_clicked(self, button: Gtk.Button):
        window = create_preferences_window(self.settings, transient_for=self, modal=True)
        window.present()


class AudioSelectorApp(Adw.Application):
    def __init__(self):
        super().__init__(application_id=APP_ID)
        self.extension = None
        self.window = None

    def do_activate(self, *args):
        if self.window is None:
            settings = SelectorSettings()
            self.window = AudioSelectorWindow(self, settings)
            self.extension = AudioSelectorExtension(settings, self.window, GtkDeviceMenuView)
            self.extension.enable()
        self.window.present()

    def do_shutdown(self):
        if self.extension:
            self.extension.disable()
        Adw.Application.do_shutdown(self)


def main():
    """Entry point for the audio selector panel."""
    setup_logging(CONFIG["logging"]["level"])
    return AudioSelectorApp().run(sys.argv)


if __name__ == "__main__":
    main()
