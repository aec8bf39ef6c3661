"""
Texture atlas packer - trims sprites, packs them onto one page and writes
sprite-atlas JSON metadata.

Packing is a greedy shelf/guillotine heuristic: boxes are sorted by height
and dropped into the last free space that fits, and that space is removed,
shrunk or split in two. Given the same sprite order the result is always
the same.
"""

import math
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from PIL import Image

from .constants import (
    ATLAS_APP_NAME,
    ATLAS_FORMAT_VERSION,
    ATLAS_PIXEL_FORMAT,
    BLEED_MARGIN,
    FRAME_SEPARATOR,
    PACKING_DENSITY,
    SLICE_FRAME_SEPARATOR,
)
from .errors import EmptyInputError
from .logging_config import get_logger
from .slices import generate_slice_frames, nine_slice_borders
from .sprites import ExtractedSprite, SpriteFilterPolicy, TrimInfo, base_name, find_trim, normalize_pixel_data
from .utils import save_json

logger = get_logger('atlas_packer')

Size = Union[int, float]


@dataclass(frozen=True)
class Space:
    """A free rectangle on the page; the first one is infinitely tall."""
    x: int
    y: int
    w: int
    h: Size


@dataclass(frozen=True)
class Box:
    """A trimmed sprite plus its bleed border, and where it was placed."""
    w: int
    h: int
    sprite: ExtractedSprite
    trim: TrimInfo
    order: int  # Position in the input, for stable grouping
    x: int = 0
    y: int = 0


@dataclass(frozen=True)
class PackState:
    """Boxes placed so far and the free spaces left."""
    placed: Tuple[Box, ...]
    spaces: Tuple[Space, ...]


@dataclass(frozen=True)
class PackResult:
    """A packed page: pixels, placements and anything skipped on the way."""
    image: Image.Image
    width: int
    height: int
    boxes: Tuple[Box, ...]
    warnings: Tuple[str, ...] = field(default_factory=tuple)


def start_width(boxes: List[Box]) -> int:
    """Width of the first column: roughly square, never narrower than the widest box."""
    area = sum(box.w * box.h for box in boxes)
    widest = max((box.w for box in boxes), default=0)
    return max(math.ceil(math.sqrt(area / PACKING_DENSITY)), widest)


def place_box(state: PackState, box: Box) -> Optional[PackState]:
    """
    Place one box into the last free space that fits it.

    Returns:
        The next state, or None if no space can hold the box
    """
    spaces = list(state.spaces)
    for i in range(len(spaces) - 1, -1, -1):
        space = spaces[i]
        if box.w > space.w or box.h > space.h:
            continue

        placed = replace(box, x=space.x, y=space.y)

        if box.w == space.w and box.h == space.h:
            # Exact fit: drop the space, moving the last one into its slot
            last = spaces.pop()
            if i < len(spaces):
                spaces[i] = last
        elif box.h == space.h:
            spaces[i] = Space(space.x + box.w, space.y, space.w - box.w, space.h)
        elif box.w == space.w:
            spaces[i] = Space(space.x, space.y + box.h, space.w, space.h - box.h)
        else:
            spaces.append(Space(space.x + box.w, space.y, space.w - box.w, box.h))
            spaces[i] = Space(space.x, space.y + box.h, space.w, space.h - box.h)

        return PackState(state.placed + (placed,), tuple(spaces))
    return None


def pack_boxes(boxes: List[Box]) -> List[Box]:
    """
    Pack boxes onto a page.

    Args:
        boxes: Boxes sized to trimmed content plus bleed

    Returns:
        The placed boxes, in placement order (tallest first)
    """
    ordered = sorted(boxes, key=lambda box: box.h, reverse=True)
    state = PackState(placed=(), spaces=(Space(0, 0, start_width(boxes), math.inf),))

    for box in ordered:
        next_state = place_box(state, box)
        if next_state is None:
            # Unreachable while the first column is as wide as the widest box
            raise RuntimeError(f"No space for '{box.sprite.name}' ({box.w}x{box.h})")
        state = next_state

    return list(state.placed)


def _normalized(sprite: ExtractedSprite) -> ExtractedSprite:
    """The sprite, and its slice layer, with pixel buffers of exactly w*h*4 bytes."""
    slices = sprite.slice_sprite
    if slices is not None:
        slice_data = normalize_pixel_data(slices.name, slices.data, slices.width, slices.height)
        if slice_data != slices.data:
            sprite = replace(sprite, slice_sprite=replace(slices, data=slice_data))

    data = normalize_pixel_data(sprite.name, sprite.data, sprite.width, sprite.height)
    if data != sprite.data:
        sprite = replace(sprite, data=data)
    return sprite


def _stretch(image: Image.Image, box: Tuple[int, int, int, int], size: Tuple[int, int]) -> Image.Image:
    """Crop a one pixel wide (or tall) strip and repeat it out to size."""
    return image.crop(box).resize(size, Image.NEAREST)


def bleed(content: Image.Image, margin: int = BLEED_MARGIN) -> Image.Image:
    """
    Surround trimmed content with a border that repeats its edge pixels.

    Edge columns are stretched first, then the edge rows of the widened
    image, which also fills the corners.
    """
    width, height = content.size
    full_width = width + margin * 2
    padded = Image.new('RGBA', (full_width, height + margin * 2), (0, 0, 0, 0))
    padded.paste(content, (margin, margin))
    if margin == 0:
        return padded

    padded.paste(_stretch(content, (0, 0, 1, height), (margin, height)), (0, margin))
    padded.paste(_stretch(content, (width - 1, 0, width, height), (margin, height)), (margin + width, margin))
    padded.paste(_stretch(padded, (0, margin, full_width, margin + 1), (full_width, margin)), (0, 0))
    padded.paste(
        _stretch(padded, (0, margin + height - 1, full_width, margin + height), (full_width, margin)),
        (0, margin + height)
    )
    return padded


def _draw_box(page: Image.Image, box: Box) -> None:
    """Paste a box's trimmed content, with bleed, at its packed position."""
    trim = box.trim
    content = box.sprite.image.crop((trim.left, trim.top, trim.left + trim.width, trim.top + trim.height))
    page.paste(bleed(content), (box.x, box.y))


def pack_sprites(
    sprites: Iterable[ExtractedSprite],
    policy: Optional[SpriteFilterPolicy] = None
) -> PackResult:
    """
    Trim, pack and draw sprites onto a single atlas page.

    Pixel buffers of the wrong size are padded or truncated (with a logged
    warning), and sprites without any visible pixel are skipped with a
    warning. The page is exactly as large as the packed boxes need.

    Args:
        sprites: Sprites to pack, in the order their frames are numbered
        policy: If given, slice and ignored layers are left out

    Raises:
        EmptyInputError: If there are no sprites, or none has visible pixels
    """
    sprites = list(sprites)
    if policy is not None:
        sprites = [s for s in sprites if policy.is_content(s.name)]
    if not sprites:
        raise EmptyInputError("No sprites to process")

    warnings: List[str] = []
    boxes: List[Box] = []
    for order, sprite in enumerate(sprites):
        sprite = _normalized(sprite)
        trim = find_trim(sprite)
        if trim is None:
            message = f"No visible content in layer '{sprite.name}', skipping"
            logger.warning(message)
            warnings.append(message)
            continue
        boxes.append(Box(
            w=trim.width + BLEED_MARGIN * 2,
            h=trim.height + BLEED_MARGIN * 2,
            sprite=sprite,
            trim=trim,
            order=order,
        ))

    if not boxes:
        raise EmptyInputError("None of the sprites has visible content")

    placed = pack_boxes(boxes)
    width = max(box.x + box.w for box in placed)
    height = max(box.y + box.h for box in placed)

    image = Image.new('RGBA', (width, height), (0, 0, 0, 0))
    for box in placed:
        _draw_box(image, box)

    logger.info(f"Packed {len(placed)} sprites into {width}x{height}")
    return PackResult(image, width, height, tuple(placed), tuple(warnings))


def _frame_data(box: Box) -> Dict[str, Any]:
    trim = box.trim
    return {
        'frame': {
            'x': box.x + BLEED_MARGIN,
            'y': box.y + BLEED_MARGIN,
            'w': trim.width,
            'h': trim.height,
        },
        'rotated': False,
        'trimmed': True,
        'spriteSourceSize': {
            'x': trim.left,
            'y': trim.top,
            'w': trim.width,
            'h': trim.height,
        },
        'sourceSize': {
            'w': box.sprite.width,
            'h': box.sprite.height,
        },
    }


def build_atlas_metadata(result: PackResult, image_name: str) -> Dict[str, Any]:
    """
    Build sprite-atlas JSON for a packed page.

    Sprites are grouped by base name ('walk#2' -> 'walk') in input order and
    each gets a frame named '<base>#<position in group>'. Sprites with a
    slice layer also get nine-slice borders and one untrimmed frame per
    slice region, '<base>#<i>.<j>'. Groups of two or more frames become
    animations.

    Raises:
        UnsupportedSliceGridError: If a slice layer is not a 3x3 grid
    """
    groups: Dict[str, List[Box]] = OrderedDict()
    for box in sorted(result.boxes, key=lambda b: b.order):
        groups.setdefault(base_name(box.sprite.name), []).append(box)

    frames: Dict[str, Dict[str, Any]] = {}
    animations: Dict[str, List[str]] = {}

    for sprite_name, boxes in groups.items():
        frame_names = []
        for frame_index, box in enumerate(boxes):
            frame_name = f"{sprite_name}{FRAME_SEPARATOR}{frame_index}"
            frame_names.append(frame_name)
            frame_data = _frame_data(box)
            frames[frame_name] = frame_data

            if box.sprite.slice_sprite is None:
                continue

            slice_rects = generate_slice_frames(box.sprite)
            frame_data['borders'] = nine_slice_borders(slice_rects, box.trim)

            for slice_index, rect in enumerate(slice_rects):
                frames[f"{frame_name}{SLICE_FRAME_SEPARATOR}{slice_index}"] = {
                    'frame': {
                        'x': box.x + BLEED_MARGIN + (rect.x - box.trim.left),
                        'y': box.y + BLEED_MARGIN + (rect.y - box.trim.top),
                        'w': rect.w,
                        'h': rect.h,
                    },
                    'rotated': False,
                    'trimmed': False,
                    'spriteSourceSize': {'x': 0, 'y': 0, 'w': rect.w, 'h': rect.h},
                    'sourceSize': {'w': rect.w, 'h': rect.h},
                }

        if len(frame_names) > 1:
            animations[sprite_name] = frame_names

    return {
        'frames': frames,
        'animations': animations,
        'meta': {
            'app': ATLAS_APP_NAME,
            'version': ATLAS_FORMAT_VERSION,
            'image': image_name,
            'format': ATLAS_PIXEL_FORMAT,
            'scale': 1,
            'size': {
                'w': result.width,
                'h': result.height,
            },
            'related_multi_packs': [],
        },
    }


class Atlas:
    """
    Collects sprites for one atlas page and builds its image and metadata.

    Slice layers and ignored layers are filtered out on the way in, as
    decided by the SpriteFilterPolicy. The image is packed once and reused
    by build_metadata until more sprites are added.
    """

    def __init__(self, policy: Optional[SpriteFilterPolicy] = None):
        self.policy = policy or SpriteFilterPolicy()
        self.sprites: List[ExtractedSprite] = []
        self._result: Optional[PackResult] = None

    def add_sprites(self, sprites: Iterable[ExtractedSprite]) -> None:
        """Add content sprites; slice and ignored layers are dropped."""
        for sprite in sprites:
            if self.policy.is_slice(sprite.name):
                continue
            if self.policy.is_ignored(sprite.name):
                logger.debug(f"Ignoring layer '{sprite.name}'")
                continue

            self.sprites.append(_normalized(sprite))
        self._result = None

    @property
    def warnings(self) -> List[str]:
        return list(self._result.warnings) if self._result else []

    def build_atlas_image(self) -> Image.Image:
        """
        Pack the collected sprites.

        Raises:
            EmptyInputError: If no sprites were added
        """
        self._result = pack_sprites(self.sprites, self.policy)
        return self._result.image

    def build_metadata(self, image_path: str) -> Dict[str, Any]:
        """Atlas JSON for the packed page, referencing image_path."""
        if self._result is None:
            self.build_atlas_image()
        return build_atlas_metadata(self._result, image_path)

    def save(self, output_dir: Path, name: str) -> Tuple[Path, Path]:
        """
        Write '<name>.png' and '<name>.json' into output_dir.

        Returns:
            (image_path, metadata_path)
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        image_path = output_dir / f"{name}.png"
        metadata_path = output_dir / f"{name}.json"

        self.build_atlas_image().save(image_path, 'PNG')
        save_json(self.build_metadata(image_path.name), str(metadata_path))

        logger.info(f"Saved atlas {image_path} ({len(self.sprites)} sprites)")
        return image_path, metadata_path
