"""
Sprite types shared by the extractor and the atlas packer.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from PIL import Image

from .constants import BYTES_PER_PIXEL, FRAME_SEPARATOR, IGNORED_LAYER_PREFIXES, SLICE_SUFFIX
from .logging_config import get_logger

logger = get_logger('sprites')


@dataclass(frozen=True)
class ExtractedSprite:
    """
    A named RGBA8888 image ready for packing.

    Names follow 'baseName' or 'baseName#frameIndex'. A content sprite may
    point at its companion 'baseName-slices' sprite, whose coloured regions
    describe a nine-slice grid.
    """
    name: str
    width: int
    height: int
    data: bytes
    x: int = 0  # Offset on the source canvas
    y: int = 0
    index: int = 0  # Source layer index
    path: str = ''
    slice_sprite: Optional['ExtractedSprite'] = field(default=None, repr=False)
    frame_index: Optional[int] = None
    spritesheet_size: Optional[int] = None

    @property
    def image(self) -> Image.Image:
        """The pixel data as a Pillow RGBA image (data must already be w*h*4 bytes)."""
        return Image.frombytes('RGBA', (self.width, self.height), self.data)

    def pixel(self, x: int, y: int) -> Tuple[int, int, int, int]:
        """RGBA at (x, y), with coordinates clamped to the sprite."""
        x = max(0, min(x, self.width - 1))
        y = max(0, min(y, self.height - 1))
        return self.image.getpixel((x, y))


@dataclass(frozen=True)
class SpriteFilterPolicy:
    """Which layer names are packed, linked as slices, or dropped."""
    slice_suffix: str = SLICE_SUFFIX
    ignored_prefixes: Tuple[str, ...] = IGNORED_LAYER_PREFIXES

    def is_slice(self, name: str) -> bool:
        return name.endswith(self.slice_suffix)

    def is_ignored(self, name: str) -> bool:
        return name.startswith(self.ignored_prefixes)

    def is_content(self, name: str) -> bool:
        return not self.is_slice(name) and not self.is_ignored(name)

    def content_name(self, slice_name: str) -> str:
        """'icon-slices' -> 'icon'."""
        return slice_name[:-len(self.slice_suffix)]


@dataclass(frozen=True)
class TrimInfo:
    """Tight bounds of a sprite's visible pixels."""
    left: int
    top: int
    width: int
    height: int


def base_name(name: str) -> str:
    """'walk#3' -> 'walk'."""
    return name.split(FRAME_SEPARATOR)[0]


def normalize_pixel_data(name: str, data: bytes, width: int, height: int) -> bytes:
    """
    Pad with zeros or truncate pixel data to width * height * 4 bytes.

    Extraction occasionally yields buffers of the wrong size; one bad layer
    should not stop the whole build, so the mismatch is logged and repaired.
    """
    expected = width * height * BYTES_PER_PIXEL
    if len(data) == expected:
        return bytes(data)

    logger.warning(f"Data size mismatch for '{name}': expected {expected} bytes, got {len(data)} bytes")
    if len(data) < expected:
        return bytes(data) + bytes(expected - len(data))
    return bytes(data[:expected])


def find_trim(sprite: ExtractedSprite) -> Optional[TrimInfo]:
    """
    Find the bounding box of pixels whose alpha is not zero.

    Returns:
        TrimInfo, or None if the sprite has no visible pixels
    """
    if sprite.width == 0 or sprite.height == 0:
        return None

    bbox = sprite.image.getchannel('A').getbbox()
    if bbox is None:
        return None
    left, top, right, bottom = bbox
    return TrimInfo(left, top, right - left, bottom - top)
