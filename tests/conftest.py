"""Pytest configuration and shared fixtures for tilesmith."""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tilesmith.sprites import ExtractedSprite  # noqa: E402
from tilesmith.tmx_parser import TiledParser  # noqa: E402


def solid(width, height, color=(255, 0, 0, 255)):
    """RGBA bytes of a single-colour image."""
    return bytes(color) * (width * height)


def bordered(core_width, core_height, border, color=(0, 255, 0, 255)):
    """A solid core surrounded by a fully transparent border."""
    width = core_width + border * 2
    height = core_height + border * 2
    data = bytearray(width * height * 4)
    for y in range(border, border + core_height):
        for x in range(border, border + core_width):
            offset = (y * width + x) * 4
            data[offset:offset + 4] = bytes(color)
    return width, height, bytes(data)


def make_sprite(name, width, height, data=None, **kwargs):
    return ExtractedSprite(name=name, width=width, height=height, data=data or solid(width, height), **kwargs)


@pytest.fixture
def parser():
    return TiledParser()
