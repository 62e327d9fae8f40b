#!/usr/bin/env python3
from setuptools import setup

setup(
    name="audio-selector",
    version="1.0.0",
    description="Panel menus for choosing the active audio input and output device on Linux",
    py_modules=[
        "audio_selector_config",
        "audio_selector_extension",
        "audio_selector_gvc",
        "audio_selector_menu",
        "audio_selector_mixer",
        "audio_selector_pactl",
        "audio_selector_panel",
        "audio_selector_prefs",
        "audio_selector_settings",
    ],
    install_requires=[
        "PyGObject>=3.42",
        "tomli>=2.0.0; python_version < '3.11'",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "audio-selector=audio_selector_panel:main",
            "audio-selector-prefs=audio_selector_prefs:main",
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: GNU General Public License v2 or later (GPLv2+)",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Multimedia :: Sound/Audio",
    ],
)
