"""
Nine-slice support.

A content sprite 'icon' can have a companion 'icon-slices' layer painted
with one flat colour per slice region. The regions give the slice frames
emitted into the atlas, and their origins give the nine-slice borders.
"""

from dataclasses import dataclass
from typing import Dict, List

from .constants import NINE_SLICE_ORIGINS
from .errors import UnsupportedSliceGridError
from .sprites import ExtractedSprite, TrimInfo


@dataclass(frozen=True)
class SliceRect:
    """A slice region in content sprite coordinates."""
    x: int
    y: int
    w: int
    h: int


def generate_slice_frames(sprite: ExtractedSprite) -> List[SliceRect]:
    """
    Decompose a sprite's slice layer into its regions.

    Each 4-connected area of one non-transparent colour in the slice sprite
    is one region; its bounding box is translated from the slice layer's
    canvas position into the content sprite's coordinates.

    Returns:
        Regions ordered top-to-bottom, then left-to-right (empty if the
        sprite has no slice layer)
    """
    slices = sprite.slice_sprite
    if slices is None:
        return []

    width, height = slices.width, slices.height
    pixels = slices.image.load()
    dx = slices.x - sprite.x
    dy = slices.y - sprite.y
    visited = set()
    rects = []

    for start_y in range(height):
        for start_x in range(width):
            if (start_x, start_y) in visited or pixels[start_x, start_y][3] == 0:
                continue

            color = pixels[start_x, start_y]
            visited.add((start_x, start_y))
            stack = [(start_x, start_y)]
            left, top = width, height
            right = bottom = 0

            while stack:
                x, y = stack.pop()
                left, right = min(left, x), max(right, x)
                top, bottom = min(top, y), max(bottom, y)

                for nx, ny in ((x - 1, y), (x + 1, y), (x, y - 1), (x, y + 1)):
                    if 0 <= nx < width and 0 <= ny < height and (nx, ny) not in visited \
                            and pixels[nx, ny] == color:
                        visited.add((nx, ny))
                        stack.append((nx, ny))

            rects.append(SliceRect(left + dx, top + dy, right - left + 1, bottom - top + 1))

    return sorted(rects, key=lambda r: (r.y, r.x))


def nine_slice_borders(rects: List[SliceRect], trim: TrimInfo) -> Dict[str, int]:
    """
    Border widths of a 3x3 slice grid, relative to the trimmed frame.

    Raises:
        UnsupportedSliceGridError: If the regions do not start at exactly
            three distinct x and three distinct y positions
    """
    xs = sorted({r.x for r in rects})
    ys = sorted({r.y for r in rects})
    if len(xs) != NINE_SLICE_ORIGINS or len(ys) != NINE_SLICE_ORIGINS:
        raise UnsupportedSliceGridError(
            f"Expected a 3x3 slice grid, found {len(xs)} columns and {len(ys)} rows"
        )

    return {
        'left': xs[1] - trim.left,
        'top': ys[1] - trim.top,
        'right': trim.width - (xs[-1] - trim.left),
        'bottom': trim.height - (ys[-1] - trim.top),
    }
