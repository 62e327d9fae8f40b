#!/usr/bin/env python3
"""
Audio Selector lifecycle
========================

Creates zero, one or two device menus depending on the two settings flags
and places them in the host panel right below the output volume control.
Any settings change tears everything down and builds it again.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

from audio_selector_config import CONFIG
from audio_selector_menu import DeviceMenu, MenuView
from audio_selector_mixer import Direction, MixerService, MixerUnavailableError
from audio_selector_settings import SHOW_INPUT_DEVICE_MENU, SHOW_OUTPUT_DEVICE_MENU, SelectorSettings

logger = logging.getLogger(__name__)


class HostPanel(Protocol):
    output_volume_item: Any

    def menu_items(self) -> List[Any]:
        ...

    def insert_menu_item(self, item: Any, position: int) -> None:
        ...

    def remove_menu_item(self, item: Any) -> None:
        ...


def create_mixer_service(config: Optional[dict] = None) -> MixerService:
    """Build the mixer backend named in the [mixer] section of the config."""
    mixer_config = (config or CONFIG)["mixer"]
    backend = mixer_config.get("backend", "pactl")
    name = mixer_config.get("application_name", "Audio Selector")

    if backend == "pactl":
        from audio_selector_pactl import PactlMixerService
        return PactlMixerService(name)
    if backend == "gvc":
        from audio_selector_gvc import GvcMixerService
        return GvcMixerService(name)
    raise ValueError(f"Unknown mixer backend: {backend}")


class MenuSession:
    """Everything owned between one enable() and the matching disable()."""

    def __init__(self, mixer: MixerService):
        self.mixer = mixer
        self.menus: Dict[Direction, DeviceMenu] = {}


class AudioSelectorExtension:
    def __init__(self, settings: SelectorSettings, panel: HostPanel,
                 view_factory: Callable[[Direction], MenuView],
                 mixer_factory: Callable[[], MixerService] = create_mixer_service):
        self.settings = settings
        self.panel = panel
        self.view_factory = view_factory
        self.mixer_factory = mixer_factory
        self.session: Optional[MenuSession] = None
        self._settings_handler: Optional[int] = None

    @property
    def is_enabled(self) -> bool:
        return self._settings_handler is not None

    @property
    def menus(self) -> Dict[Direction, DeviceMenu]:
        return self.session.menus if self.session else {}

    def enable(self):
        if self.is_enabled:
            logger.warning("Audio selector is already enabled")
            return

        show_output = self.settings.get_boolean(SHOW_OUTPUT_DEVICE_MENU)
        show_input = self.settings.get_boolean(SHOW_INPUT_DEVICE_MENU)

        if show_output or show_input:
            self.session = self._open_session(show_output, show_input)

        self._settings_handler = self.settings.connect('changed', self._on_settings_changed)
        logger.info("enabled")

    def _open_session(self, show_output: bool, show_input: bool) -> Optional[MenuSession]:
        mixer = self.mixer_factory()
        try:
            mixer.open()
        except MixerUnavailableError as e:
            logger.warning(f"⚠️  No mixer connection, device menus not shown: {e}")
            return None

        session = MenuSession(mixer)
        try:
            # Both go right below the output volume item, so the output menu
            # inserted last ends up first.
            if show_input:
                session.menus[Direction.INPUT] = self._add_menu(mixer, Direction.INPUT)
            if show_output:
                session.menus[Direction.OUTPUT] = self._add_menu(mixer, Direction.OUTPUT)
        except Exception:
            logger.error("❌ Could not build device menus, closing mixer")
            self._close_session(session)
            raise
        return session

    def _close_session(self, session: MenuSession):
        for menu in session.menus.values():
            menu.disable()
            if menu.view in self.panel.menu_items():
                self.panel.remove_menu_item(menu.view)
        session.menus.clear()
        session.mixer.close()

    def _add_menu(self, mixer: MixerService, direction: Direction) -> DeviceMenu:
        menu = DeviceMenu(mixer, direction, self.view_factory(direction))
        items = self.panel.menu_items()
        try:
            position = items.index(self.panel.output_volume_item) + 1
        except ValueError:
            logger.warning("Output volume item not found in panel, appending device menu")
            position = len(items)
        try:
            self.panel.insert_menu_item(menu.view, position)
        except Exception:
            menu.disable()
            raise
        return menu

    def disable(self):
        if not self.is_enabled:
            return

        self.settings.disconnect(self._settings_handler)
        self._settings_handler = None

        session, self.session = self.session, None
        if session:
            self._close_session(session)

        logger.info("disabled")

    def _on_settings_changed(self, settings, key):
        logger.debug(f"Settings changed ({key}), rebuilding menus")
        self.disable()
        self.enable()
