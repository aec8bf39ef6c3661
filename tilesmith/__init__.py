"""
Tilesmith - Tiled map converter and texture atlas packer

Converts Tiled TMX/TSX/TX documents to validated Tiled JSON, and packs
sprites (trimmed, with a 1px bleed and nine-slice metadata) into a single
texture atlas page.
"""

__version__ = "0.1.0"

from .atlas_packer import (
    Atlas,
    PackResult,
    build_atlas_metadata,
    pack_boxes,
    pack_sprites,
)
from .errors import (
    EmptyInputError,
    SchemaValidationError,
    StructuralError,
    TileDataError,
    TilesmithError,
    UnsupportedSliceGridError,
    XmlSyntaxError,
)
from .sprite_extractor import extract_sprites, load_sprites_from_directory
from .sprites import ExtractedSprite, SpriteFilterPolicy
from .tmx_parser import TiledParser
