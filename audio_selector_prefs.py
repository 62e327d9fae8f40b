#!/usr/bin/env python3
"""Preferences window: one switch per device menu."""

import logging
import sys

import gi

gi.require_version('Gtk', '4.0')
gi.require_version('Adw', '1')
from gi.repository import Adw, Gtk

from audio_selector_config import CONFIG, setup_logging
from audio_selector_settings import SHOW_INPUT_DEVICE_MENU, SHOW_OUTPUT_DEVICE_MENU, SelectorSettings

APP_ID = "org.audioselector.Preferences"

ROWS = [
    ('Show Audio Output Menu', SHOW_OUTPUT_DEVICE_MENU),
    ('Show Audio Input Menu', SHOW_INPUT_DEVICE_MENU),
]

logger = logging.getLogger(__name__)


class SettingsPanel:
    def __init__(self, settings: SelectorSettings):
        self.settings = settings
        self.switches = {}

    def render(self) -> Adw.PreferencesPage:
        group = Adw.PreferencesGroup()
        for title, key in ROWS:
            group.add(self._create_switch_row(title, key))

        page = Adw.PreferencesPage()
        page.add(group)
        return page

    def _create_switch_row(self, title: str, key: str) -> Adw.ActionRow:
        switch = Gtk.Switch(valign=Gtk.Align.CENTER)
        self.settings.bind(key, switch, 'active')
        self.switches[key] = switch

        row = Adw.ActionRow(title=title)
        row.add_suffix(switch)
        row.set_activatable_widget(switch)
        return row

    def fill_preferences_window(self, window: Adw.PreferencesWindow):
        window.add(self.render())


def create_preferences_window(settings: SelectorSettings, **kwargs) -> Adw.PreferencesWindow:
    window = Adw.PreferencesWindow(title="Audio Selector Preferences", **kwargs)
    SettingsPanel(settings).fill_preferences_window(window)
    return window


class PreferencesApp(Adw.Application):
    def __init__(self):
        super().__init__(application_id=APP_ID)
        self.connect("activate", self.on_activate)

    def on_activate(self, app):
        window = create_preferences_window(SelectorSettings(), application=app)
        window.present()


def main():
    """Entry point for the preferences window."""
    setup_logging(CONFIG["logging"]["level"])
    return PreferencesApp().run(sys.argv)


if __name__ == "__main__":
    main()
