"""
Sprite extraction from layered images.

A layered image (as exported by pixel-art editors) has layers, frames and
per-frame cels. Every non-empty cel becomes a sprite named after its layer;
layers named '<name>-slices' describe nine-slice grids for '<name>', tiles of
attached tilesets become sprites of their own, and each frame can optionally
be flattened into a '<base>_spritesheet' sprite.
"""

import re
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional

from PIL import Image

from .compositing import TilemapInfo, blit_cel, extract_tile, render_tilemap_cel, tile_strip
from .constants import FRAME_SEPARATOR
from .logging_config import get_logger
from .sprites import ExtractedSprite, SpriteFilterPolicy, normalize_pixel_data

logger = get_logger('sprite_extractor')

FRAME_FILE_PATTERN = re.compile(rf'^(?P<name>.+?){re.escape(FRAME_SEPARATOR)}(?P<frame>\d+)$')


@dataclass(frozen=True)
class ImageLayer:
    name: str
    visible: bool = True
    tileset_index: Optional[int] = None  # Set for tilemap layers


@dataclass(frozen=True)
class Cel:
    """
    One layer's content in one frame.

    For image cels width/height are in pixels and data is RGBA8888. For
    tilemap cels they count tiles, and data holds packed tile references
    described by tilemap.
    """
    layer_index: int
    x: int
    y: int
    width: int
    height: int
    data: bytes
    tilemap: Optional[TilemapInfo] = None


@dataclass(frozen=True)
class Frame:
    cels: List[Cel] = field(default_factory=list)


@dataclass(frozen=True)
class TileSheet:
    """A tileset stored as tile_count consecutive RGBA tile images."""
    name: str
    tile_width: int
    tile_height: int
    tile_count: int
    pixels: bytes

    def strip(self) -> Image.Image:
        return tile_strip(self.pixels, self.tile_width, self.tile_height, self.tile_count)


@dataclass(frozen=True)
class LayeredImage:
    width: int
    height: int
    layers: List[ImageLayer]
    frames: List[Frame]
    tilesets: List[TileSheet] = field(default_factory=list)


@dataclass
class ExtractionResult:
    sprites: List[ExtractedSprite] = field(default_factory=list)
    atlas_config: Dict[str, Dict[str, int]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


def _render_tilemap_sprite(cel: Cel, tileset: TileSheet) -> bytes:
    """Render a tilemap cel on its own, sized to its tile grid."""
    width = cel.width * tileset.tile_width
    height = cel.height * tileset.tile_height
    canvas = Image.new('RGBA', (width, height), (0, 0, 0, 0))
    render_tilemap_cel(
        canvas, cel.data, 0, 0, cel.width, cel.height,
        cel.tilemap, tileset.strip(), tileset.tile_width, tileset.tile_height
    )
    return canvas.tobytes()


def _cel_image(cel: Cel, name: str) -> Image.Image:
    data = normalize_pixel_data(name, cel.data, cel.width, cel.height)
    return Image.frombytes('RGBA', (cel.width, cel.height), data)


def extract_cel_sprite(cel: Cel, image: LayeredImage) -> Optional[ExtractedSprite]:
    """
    Turn one cel into a sprite named after its layer.

    Returns:
        The sprite, or None if the cel is empty or its layer is unknown
    """
    if cel.layer_index < 0 or cel.layer_index >= len(image.layers):
        logger.debug(f"Skipping cel with invalid layer index {cel.layer_index}")
        return None

    layer = image.layers[cel.layer_index]
    name = layer.name or f"sprite_{cel.layer_index}"

    if not cel.data or cel.width == 0 or cel.height == 0:
        logger.debug(f"Skipping sprite '{name}' (no data)")
        return None

    width, height, data = cel.width, cel.height, cel.data
    if cel.tilemap is not None:
        if layer.tileset_index is None or layer.tileset_index >= len(image.tilesets):
            logger.warning(f"Tilemap layer '{name}' has no tileset, skipping")
            return None
        tileset = image.tilesets[layer.tileset_index]
        data = _render_tilemap_sprite(cel, tileset)
        width *= tileset.tile_width
        height *= tileset.tile_height

    logger.debug(f"Extracting sprite '{name}' ({width}x{height})")
    return ExtractedSprite(
        name=name,
        width=width,
        height=height,
        data=normalize_pixel_data(name, data, width, height),
        x=cel.x,
        y=cel.y,
        index=cel.layer_index,
    )


def composite_frame(
    image: LayeredImage,
    frame_index: int,
    sheet_name: str,
    spritesheet_size: int,
    policy: SpriteFilterPolicy
) -> Optional[ExtractedSprite]:
    """
    Flatten the visible content layers of one frame, bottom to top.

    Returns:
        A canvas-sized sprite named '<sheet_name>_spritesheet', or None if
        the frame does not exist
    """
    if frame_index < 0 or frame_index >= len(image.frames):
        return None

    canvas = Image.new('RGBA', (image.width, image.height), (0, 0, 0, 0))
    cels = sorted(image.frames[frame_index].cels, key=lambda c: c.layer_index)

    for cel in cels:
        if cel.layer_index < 0 or cel.layer_index >= len(image.layers):
            continue
        layer = image.layers[cel.layer_index]
        if not policy.is_content(layer.name) or not layer.visible:
            continue
        if not cel.data or cel.width == 0 or cel.height == 0:
            continue

        if cel.tilemap is not None:
            if layer.tileset_index is not None and layer.tileset_index < len(image.tilesets):
                tileset = image.tilesets[layer.tileset_index]
                render_tilemap_cel(
                    canvas, cel.data, cel.x, cel.y, cel.width, cel.height,
                    cel.tilemap, tileset.strip(), tileset.tile_width, tileset.tile_height
                )
            continue

        blit_cel(canvas, _cel_image(cel, layer.name), cel.x, cel.y)

    name = f"{sheet_name}_spritesheet"
    logger.info(f"Created composite sprite '{name}' ({image.width}x{image.height}) with ss={spritesheet_size}")
    return ExtractedSprite(
        name=name,
        width=image.width,
        height=image.height,
        data=canvas.tobytes(),
        index=-1,
        frame_index=frame_index,
        spritesheet_size=spritesheet_size,
    )


def extract_sprites(
    image: LayeredImage,
    policy: Optional[SpriteFilterPolicy] = None,
    spritesheet_size: Optional[int] = None,
    base_name: Optional[str] = None
) -> ExtractionResult:
    """
    Extract every packable sprite from a layered image.

    Args:
        image: The layered image
        policy: Layer naming rules (defaults to SpriteFilterPolicy())
        spritesheet_size: With base_name, also emit one flattened
            '<base_name>_spritesheet' sprite per frame
        base_name: Name for the flattened sprites

    Returns:
        ExtractionResult with sprites in layer order (frames in order within
        a layer), then tile sprites, then flattened frames; atlas_config maps
        each frame name to its canvas rectangle
    """
    policy = policy or SpriteFilterPolicy()
    result = ExtractionResult()

    if not image.frames:
        message = "No frames found in the layered image"
        logger.warning(message)
        result.warnings.append(message)
        return result

    # Group each layer's cels across frames
    layer_frames: Dict[int, List[ExtractedSprite]] = OrderedDict()
    for frame_index, frame in enumerate(image.frames):
        for cel in sorted(frame.cels, key=lambda c: c.layer_index):
            sprite = extract_cel_sprite(cel, image)
            if sprite is not None:
                layer_frames.setdefault(cel.layer_index, []).append(
                    replace(sprite, frame_index=frame_index)
                )

    slice_sprites: Dict[str, ExtractedSprite] = {}
    content: List[ExtractedSprite] = []
    for layer_index, sprites in layer_frames.items():
        name = image.layers[layer_index].name
        if policy.is_ignored(name):
            continue
        if policy.is_slice(name):
            # Slice grids do not animate; the first frame defines them
            slice_sprites[policy.content_name(name)] = sprites[0]
            result.sprites.append(sprites[0])
            continue
        content.extend(sprites)

    for sprite in content:
        slice_sprite = slice_sprites.get(sprite.name)
        if slice_sprite is not None:
            logger.debug(
                f"Found slice layer '{slice_sprite.name}' for '{sprite.name}' at "
                f"({slice_sprite.x}, {slice_sprite.y}) with dimensions {slice_sprite.width}x{slice_sprite.height}"
            )
            sprite = replace(sprite, slice_sprite=slice_sprite)
        result.sprites.append(sprite)

        frame_name = f"{sprite.name}{FRAME_SEPARATOR}{sprite.frame_index}"
        result.atlas_config[frame_name] = {'x': sprite.x, 'y': sprite.y, 'w': sprite.width, 'h': sprite.height}

    for tileset in image.tilesets:
        if not tileset.pixels or tileset.tile_count == 0:
            message = f"Skipping tileset '{tileset.name}' (no tile data)"
            logger.warning(message)
            result.warnings.append(message)
            continue

        logger.info(
            f"Extracting {tileset.tile_count} tiles from tileset '{tileset.name}' "
            f"({tileset.tile_width}x{tileset.tile_height})"
        )
        strip = tileset.strip()
        for tile_index in range(tileset.tile_count):
            tile = extract_tile(strip, tile_index, tileset.tile_width, tileset.tile_height)
            if tile is None:
                continue
            name = f"{tileset.name}_tile_{tile_index}"
            result.sprites.append(ExtractedSprite(
                name=name,
                width=tileset.tile_width,
                height=tileset.tile_height,
                data=tile.tobytes(),
                index=len(result.sprites),
            ))
            result.atlas_config[name] = {'x': 0, 'y': 0, 'w': tileset.tile_width, 'h': tileset.tile_height}

    if spritesheet_size and base_name:
        for frame_index in range(len(image.frames)):
            sheet = composite_frame(image, frame_index, base_name, spritesheet_size, policy)
            if sheet is None:
                continue
            result.sprites.append(sheet)
            result.atlas_config[f"{sheet.name}{FRAME_SEPARATOR}{frame_index}"] = {
                'x': 0, 'y': 0, 'w': sheet.width, 'h': sheet.height
            }

    logger.info(f"Extracted {len(result.sprites)} sprites ({len(result.atlas_config)} frames)")
    return result


def _load_png(path: Path, name: str, frame_index: Optional[int]) -> ExtractedSprite:
    with Image.open(path) as img:
        rgba = img.convert('RGBA')
        return ExtractedSprite(
            name=name,
            width=rgba.width,
            height=rgba.height,
            data=rgba.tobytes(),
            path=str(path),
            frame_index=frame_index,
        )


def load_sprites_from_directory(
    sprites_dir: Path,
    policy: Optional[SpriteFilterPolicy] = None
) -> List[ExtractedSprite]:
    """
    Load PNG sprites from a directory.

    'walk#0.png', 'walk#1.png' become frames of 'walk' (ordered by frame
    number), 'icon.png' is a single sprite and 'icon-slices.png' is linked to
    it as its nine-slice layer. Files matching the ignore prefixes are
    skipped.

    Returns:
        Content sprites sorted by name then frame
    """
    policy = policy or SpriteFilterPolicy()
    sprites_dir = Path(sprites_dir)

    content: List[ExtractedSprite] = []
    slices: Dict[str, ExtractedSprite] = {}

    for path in sorted(sprites_dir.glob('*.png')):
        stem = path.stem
        if policy.is_ignored(stem):
            logger.debug(f"Ignoring {path.name}")
            continue

        if policy.is_slice(stem):
            slices[policy.content_name(stem)] = _load_png(path, stem, None)
            continue

        match = FRAME_FILE_PATTERN.match(stem)
        if match:
            content.append(_load_png(path, match.group('name'), int(match.group('frame'))))
        else:
            content.append(_load_png(path, stem, None))

    content.sort(key=lambda s: (s.name, s.frame_index or 0))

    linked = []
    for sprite in content:
        slice_sprite = slices.get(sprite.name)
        if slice_sprite is not None:
            sprite = replace(sprite, slice_sprite=slice_sprite)
        linked.append(sprite)

    logger.info(f"Loaded {len(linked)} sprites from {sprites_dir}")
    return linked
