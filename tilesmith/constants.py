"""
Constants for the Tiled and atlas toolchain.

This module contains the magic numbers and name tables used throughout the
codebase so the parser and packer read the same values.
"""

# =============================================================================
# Tiled attribute coercion
# =============================================================================
# Coercion is by attribute name, never by value: an attribute missing from
# these tables stays a string even if it looks numeric.

NUMBER_ATTRIBUTES = frozenset({
    'width',
    'height',
    'columns',
    'firstgid',
    'spacing',
    'margin',
    'tilecount',
    'tilewidth',
    'tileheight',
    'opacity',
    'compressionlevel',
    'nextlayerid',
    'nextobjectid',
    'parallaxoriginx',
    'parallaxoriginy',
    'parallaxx',
    'parallaxy',
    'hexsidelength',
    'offsetx',
    'offsety',
    'id',
    'gid',
    'x',
    'y',
    'rotation',
    'probability',
})

BOOLEAN_ATTRIBUTES = frozenset({'infinite', 'visible', 'repeatx', 'repeaty'})

# Property types whose values are coerced to numbers
NUMERIC_PROPERTY_TYPES = frozenset({'int', 'float', 'object'})

# <text> attributes coerced to booleans
TEXT_BOOLEAN_ATTRIBUTES = ('wrap', 'bold', 'italic', 'underline', 'strikeout', 'kerning')

# Default compression level Tiled writes into TMJ output
DEFAULT_COMPRESSION_LEVEL = -1

# =============================================================================
# Global tile IDs
# =============================================================================

FLIPPED_HORIZONTALLY_FLAG = 0x80000000
FLIPPED_VERTICALLY_FLAG = 0x40000000
FLIPPED_DIAGONALLY_FLAG = 0x20000000
GID_FLAGS_MASK = FLIPPED_HORIZONTALLY_FLAG | FLIPPED_VERTICALLY_FLAG | FLIPPED_DIAGONALLY_FLAG

# Bytes per GID in base64 tile data (little-endian uint32)
GID_BYTE_SIZE = 4

# =============================================================================
# Atlas packing
# =============================================================================

BLEED_MARGIN = 1  # 1px bleed on every side of a packed sprite
PACKING_DENSITY = 0.95  # Expected fill ratio used to size the first column
BYTES_PER_PIXEL = 4  # RGBA8888

SLICE_SUFFIX = '-slices'
FRAME_SEPARATOR = '#'
SLICE_FRAME_SEPARATOR = '.'
IGNORED_LAYER_PREFIXES = ('_', 'Layer')

# 9-slice grids are 3x3: three distinct origins on each axis
NINE_SLICE_ORIGINS = 3

ATLAS_APP_NAME = 'tilesmith'
ATLAS_FORMAT_VERSION = '1.0'
ATLAS_PIXEL_FORMAT = 'RGBA8888'
