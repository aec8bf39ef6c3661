"""Tests for cel blending and tilemap rendering."""

from PIL import Image

from tilesmith.compositing import (
    TilemapInfo,
    blit_cel,
    extract_tile,
    read_tile_refs,
    render_tilemap_cel,
    tile_strip,
    transform_tile,
)

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)
GREEN = (0, 255, 0, 255)
WHITE = (255, 255, 255, 255)
CLEAR = (0, 0, 0, 0)

TILEMAP = TilemapInfo(
    bits_per_tile=32,
    tile_id_mask=0x1fffffff,
    x_flip_mask=0x20000000,
    y_flip_mask=0x40000000,
    rotate_90_mask=0x80000000,
)


def canvas(width, height, color=CLEAR):
    return Image.new('RGBA', (width, height), color)


def quad():
    """2x2 tile: red, blue / green, white."""
    tile = canvas(2, 2)
    tile.putdata([RED, BLUE, GREEN, WHITE])
    return tile


def test_transparent_cel_leaves_canvas_alone():
    target = canvas(1, 1, BLUE)
    blit_cel(target, canvas(1, 1, (255, 0, 0, 0)), 0, 0)
    assert target.getpixel((0, 0)) == BLUE


def test_opaque_cel_and_cel_onto_empty_are_copied():
    target = canvas(1, 1, BLUE)
    blit_cel(target, canvas(1, 1, RED), 0, 0)
    assert target.getpixel((0, 0)) == RED

    empty = canvas(1, 1)
    blit_cel(empty, canvas(1, 1, (10, 20, 30, 40)), 0, 0)
    assert empty.getpixel((0, 0)) == (10, 20, 30, 40)


def test_half_transparent_cel_over_opaque():
    target = canvas(1, 1, BLUE)
    blit_cel(target, canvas(1, 1, (255, 0, 0, 128)), 0, 0)
    assert target.getpixel((0, 0)) == (128, 0, 127, 255)


def test_blit_cel_clips_to_canvas():
    target = canvas(2, 2)
    cel = canvas(2, 2, BLUE)
    cel.putpixel((0, 0), RED)

    blit_cel(target, cel, 1, 1)

    assert target.getpixel((0, 0)) == CLEAR
    assert target.getpixel((1, 1)) == RED
    assert target.getpixel((0, 1)) == CLEAR


def test_blit_cel_negative_offset_and_fully_outside():
    target = canvas(2, 1)
    cel = canvas(2, 1, BLUE)
    cel.putpixel((0, 0), RED)

    blit_cel(target, cel, -1, 0)
    blit_cel(target, cel, 5, 5)

    assert target.getpixel((0, 0)) == BLUE
    assert target.getpixel((1, 0)) == CLEAR


def test_transform_tile_flips():
    assert transform_tile(quad()).getpixel((0, 0)) == RED
    assert transform_tile(quad(), x_flip=True).getpixel((0, 0)) == BLUE
    assert transform_tile(quad(), y_flip=True).getpixel((1, 0)) == WHITE


def test_transform_tile_rotation_samples_from_top_right():
    rotated = transform_tile(quad(), rotate_90=True)
    assert rotated.getpixel((0, 0)) == BLUE
    assert rotated.getpixel((0, 1)) == RED

    # Flips happen before the rotation
    assert transform_tile(quad(), x_flip=True, rotate_90=True).getpixel((0, 0)) == RED


def test_extract_tile():
    strip = tile_strip(bytes(RED) + bytes(BLUE), 1, 1, 2)

    assert extract_tile(strip, 1, 1, 1).getpixel((0, 0)) == BLUE
    assert extract_tile(strip, 2, 1, 1) is None
    assert extract_tile(strip, -1, 1, 1) is None


def test_truncated_tileset_is_padded(caplog):
    strip = tile_strip(bytes(RED), 1, 1, 2)

    assert strip.size == (1, 2)
    assert extract_tile(strip, 1, 1, 1).getpixel((0, 0)) == CLEAR
    assert 'Tileset data is truncated' in caplog.text


def test_read_tile_refs():
    cel = b''.join(value.to_bytes(4, 'little') for value in (3, TILEMAP.y_flip_mask | TILEMAP.rotate_90_mask | 2))
    assert list(read_tile_refs(cel, 2, 1, TILEMAP)) == [
        (0, 0, 3, False, False, False),
        (1, 0, 2, False, True, True),
    ]


def test_render_tilemap_cel_with_flags_and_clipping():
    # Tiles 0 and 1, 2x1 each: red|blue, red|blue
    strip = tile_strip(bytes(RED) + bytes(BLUE) + bytes(RED) + bytes(BLUE), 2, 1, 2)
    cel = b''.join(value.to_bytes(4, 'little') for value in (0, TILEMAP.x_flip_mask | 1, 7))
    target = canvas(5, 1)

    render_tilemap_cel(target, cel, 0, 0, 3, 1, TILEMAP, strip, 2, 1)

    assert target.getpixel((0, 0)) == RED
    assert target.getpixel((1, 0)) == BLUE
    # Tile 1 flipped horizontally
    assert target.getpixel((2, 0)) == BLUE
    assert target.getpixel((3, 0)) == RED
    # Tile 7 is outside the tileset
    assert target.getpixel((4, 0)) == CLEAR


def test_render_tilemap_cel_16_bit_values():
    tilemap = TilemapInfo(16, 0x0fff, 0x1000, 0x2000, 0x4000)
    cel = (1).to_bytes(2, 'little') + (0).to_bytes(2, 'little')
    target = canvas(2, 1)

    render_tilemap_cel(target, cel, 0, 0, 2, 1, tilemap, tile_strip(bytes(RED) + bytes(BLUE), 1, 1, 2), 1, 1)

    assert target.tobytes() == bytes(BLUE) + bytes(RED)
