"""
GID (global tile ID) utilities for parsed Tiled maps.

The top three bits of a GID are flip flags; the rest is an index into the
combined tile space of all the map's tilesets, where each tileset owns
[firstgid, firstgid + tilecount).
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .constants import (
    FLIPPED_DIAGONALLY_FLAG,
    FLIPPED_HORIZONTALLY_FLAG,
    FLIPPED_VERTICALLY_FLAG,
    GID_FLAGS_MASK,
)
from .errors import StructuralError
from .logging_config import get_logger
from .tile_data import layer_gids

logger = get_logger('gid')


def canonical_gid(gid: int) -> int:
    """Strip the flip flags from a GID."""
    return gid & ~GID_FLAGS_MASK


def is_flipped_horizontally(gid: int) -> bool:
    return bool(gid & FLIPPED_HORIZONTALLY_FLAG)


def is_flipped_vertically(gid: int) -> bool:
    return bool(gid & FLIPPED_VERTICALLY_FLAG)


def is_flipped_diagonally(gid: int) -> bool:
    return bool(gid & FLIPPED_DIAGONALLY_FLAG)


@dataclass(frozen=True)
class TilesetRange:
    """The GID range a tileset owns in one map."""
    firstgid: int
    tilecount: int
    name: str

    @property
    def lastgid(self) -> int:
        """Last GID in the range (inclusive)."""
        return self.firstgid + self.tilecount - 1

    def contains(self, gid: int) -> bool:
        return self.firstgid <= canonical_gid(gid) < self.firstgid + self.tilecount


class TilesetIndex:
    """Resolves GIDs to the tileset that owns them by range containment."""

    def __init__(self, ranges: List[TilesetRange]):
        self.ranges = sorted(ranges, key=lambda r: r.firstgid)

    @classmethod
    def from_map(
        cls,
        tiled_map: Dict[str, Any],
        load_external: Optional[Callable[[str], Dict[str, Any]]] = None
    ) -> 'TilesetIndex':
        """
        Build an index from a parsed map.

        External tilesets carry only {firstgid, source}; their tile count
        comes from load_external(source), which should return the parsed
        TSX document. Tilesets are only read, never modified.

        Raises:
            StructuralError: If an external tileset cannot be resolved
        """
        ranges = []
        for tileset in tiled_map.get('tilesets', []):
            source = tileset.get('source')
            if source is not None:
                if load_external is None:
                    raise StructuralError(f"External tileset '{source}' needs a loader to resolve")
                resolved = load_external(source)
                tilecount = resolved.get('tilecount', 0)
                name = resolved.get('name', source)
            else:
                tilecount = tileset.get('tilecount', 0)
                name = tileset.get('name', '')
            ranges.append(TilesetRange(tileset.get('firstgid', 1), tilecount, name))
        return cls(ranges)

    def check_ranges(self) -> None:
        """
        Raises:
            StructuralError: If two tilesets claim overlapping GID ranges
        """
        for previous, current in zip(self.ranges, self.ranges[1:]):
            if current.firstgid <= previous.lastgid:
                raise StructuralError(
                    f"Tileset '{current.name}' (firstgid {current.firstgid}) overlaps "
                    f"'{previous.name}' ({previous.firstgid}-{previous.lastgid})"
                )

    def matches(self, gid: int) -> List[TilesetRange]:
        """Every tileset whose range contains the GID."""
        return [r for r in self.ranges if r.contains(gid)]

    def find(self, gid: int) -> Optional[TilesetRange]:
        """The tileset owning a GID, or None for the empty GID 0 or a gap."""
        if canonical_gid(gid) == 0:
            return None
        for tileset_range in reversed(self.ranges):
            if tileset_range.contains(gid):
                return tileset_range
        return None

    def local_id(self, gid: int) -> Optional[int]:
        """Tile ID within its owning tileset."""
        tileset_range = self.find(gid)
        if tileset_range is None:
            return None
        return canonical_gid(gid) - tileset_range.firstgid


def check_layer_gids(tiled_map: Dict[str, Any], index: TilesetIndex) -> None:
    """
    Check every non-zero GID in the map's tile layers belongs to exactly one
    tileset.

    Raises:
        StructuralError: On the first GID matching no tileset or several
    """
    for layer in tiled_map.get('layers', []):
        if layer.get('type') != 'tilelayer':
            continue
        for gid in layer_gids(layer):
            if canonical_gid(gid) == 0:
                continue
            owners = index.matches(gid)
            if len(owners) != 1:
                raise StructuralError(
                    f"GID {canonical_gid(gid)} in layer '{layer.get('name', '')}' "
                    f"matches {len(owners)} tilesets"
                )
