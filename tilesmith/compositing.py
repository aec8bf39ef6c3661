"""
Compositing helpers for flattening layered images into sprites.

Canvases, cels and tiles are Pillow RGBA images. Tilesets are strips of
tile_count tiles stacked top to bottom, tile_width pixels wide.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from PIL import Image

from .constants import BYTES_PER_PIXEL
from .logging_config import get_logger

logger = get_logger('compositing')


@dataclass(frozen=True)
class TilemapInfo:
    """How tile references are packed into a tilemap cel."""
    bits_per_tile: int
    tile_id_mask: int
    x_flip_mask: int
    y_flip_mask: int
    rotate_90_mask: int


def blit_cel(canvas: Image.Image, cel: Image.Image, x: int, y: int) -> None:
    """
    Alpha-composite a cel onto the canvas at (x, y), in place.

    The cel is clipped at the canvas edges; offsets may be negative.
    """
    left, top = max(x, 0), max(y, 0)
    right = min(x + cel.width, canvas.width)
    bottom = min(y + cel.height, canvas.height)
    if right <= left or bottom <= top:
        return
    canvas.alpha_composite(cel, dest=(left, top), source=(left - x, top - y, right - x, bottom - y))


def transform_tile(
    tile: Image.Image,
    x_flip: bool = False,
    y_flip: bool = False,
    rotate_90: bool = False
) -> Image.Image:
    """
    Apply tilemap flags to a tile.

    Flips are applied to the tile first, then the 90 degree rotation, so
    pixel (x, y) of a rotated tile comes from pixel (height - 1 - y, x) of
    the flipped tile. Rotation assumes square tiles.
    """
    if x_flip:
        tile = tile.transpose(Image.FLIP_LEFT_RIGHT)
    if y_flip:
        tile = tile.transpose(Image.FLIP_TOP_BOTTOM)
    if rotate_90:
        tile = tile.transpose(Image.ROTATE_90)
    return tile


def tile_strip(pixels: bytes, tile_width: int, tile_height: int, tile_count: int) -> Image.Image:
    """
    Wrap a tileset's consecutive RGBA tile images as one tall image.

    Truncated data is padded with transparent pixels.
    """
    expected = tile_width * tile_height * tile_count * BYTES_PER_PIXEL
    if len(pixels) < expected:
        logger.warning(f"Tileset data is truncated ({len(pixels)} of {expected} bytes)")
        pixels = bytes(pixels) + bytes(expected - len(pixels))
    return Image.frombytes('RGBA', (tile_width, tile_height * tile_count), bytes(pixels[:expected]))


def extract_tile(strip: Image.Image, tile_index: int, tile_width: int, tile_height: int) -> Optional[Image.Image]:
    """
    Cut one tile out of a tileset strip.

    Returns:
        The tile, or None if the index is out of range
    """
    if tile_height <= 0 or tile_index < 0 or tile_index >= strip.height // tile_height:
        return None
    top = tile_index * tile_height
    return strip.crop((0, top, tile_width, top + tile_height))


def read_tile_refs(
    cel_data: bytes,
    columns: int,
    rows: int,
    tilemap: TilemapInfo
) -> Iterator[Tuple[int, int, int, bool, bool, bool]]:
    """
    Decode a tilemap cel's little-endian tile references.

    Yields:
        (column, row, tile_id, x_flip, y_flip, rotate_90) in row-major order
    """
    bytes_per_tile = tilemap.bits_per_tile // 8
    for row in range(rows):
        for column in range(columns):
            offset = (row * columns + column) * bytes_per_tile
            value = int.from_bytes(cel_data[offset:offset + bytes_per_tile], 'little')
            yield (
                column,
                row,
                value & tilemap.tile_id_mask,
                bool(value & tilemap.x_flip_mask),
                bool(value & tilemap.y_flip_mask),
                bool(value & tilemap.rotate_90_mask),
            )


def render_tilemap_cel(
    canvas: Image.Image,
    cel_data: bytes,
    cel_x: int,
    cel_y: int,
    columns: int,
    rows: int,
    tilemap: TilemapInfo,
    strip: Image.Image,
    tile_width: int,
    tile_height: int
) -> None:
    """
    Render a tilemap cel onto the canvas.

    The cel holds columns * rows tile references, each bits_per_tile wide;
    the masks in tilemap split a reference into tile ID and flip/rotate
    flags. Tiles are alpha-composited and clipped at the canvas edges.
    """
    for column, row, tile_id, x_flip, y_flip, rotate_90 in read_tile_refs(cel_data, columns, rows, tilemap):
        tile = extract_tile(strip, tile_id, tile_width, tile_height)
        if tile is None:
            logger.debug(f"Tile {tile_id} is outside the tileset, skipping")
            continue
        tile = transform_tile(tile, x_flip, y_flip, rotate_90)
        blit_cel(canvas, tile, cel_x + column * tile_width, cel_y + row * tile_height)
