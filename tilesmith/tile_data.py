"""
Tile layer data decoding.

The parser keeps base64 payloads opaque, exactly as Tiled's JSON export
does. Tools that need the actual GIDs (range checks, previews) decode them
here.
"""

import base64
import binascii
import gzip
import struct
import zlib
from typing import Any, Dict, List, Optional, Union

import zstandard

from .constants import GID_BYTE_SIZE
from .errors import TileDataError
from .logging_config import get_logger

logger = get_logger('tile_data')


def _decompress(payload: bytes, compression: Optional[str]) -> bytes:
    if not compression or compression == 'none':
        return payload
    if compression == 'gzip':
        return gzip.decompress(payload)
    if compression == 'zlib':
        return zlib.decompress(payload)
    if compression in ('zstd', 'zstandard'):
        # Tiled does not always write the content size into the frame header
        return zstandard.ZstdDecompressor().decompressobj().decompress(payload)
    raise TileDataError(f"Unsupported tile data compression: {compression}")


def decode_tile_data(
    data: Union[str, List[int]],
    encoding: Optional[str] = None,
    compression: Optional[str] = None
) -> List[int]:
    """
    Decode layer or chunk data into a list of GIDs.

    Args:
        data: CSV-style list of GIDs, or a base64 string
        encoding: 'csv', 'base64' or None
        compression: None, 'gzip', 'zlib' or 'zstd' (base64 only)

    Returns:
        List of GIDs, flip flags included

    Raises:
        TileDataError: If the payload cannot be decoded
    """
    if isinstance(data, list):
        return list(data)

    if encoding != 'base64':
        raise TileDataError(f"String tile data needs base64 encoding, got {encoding!r}")

    try:
        payload = base64.b64decode(data.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise TileDataError(f"Invalid base64 tile data: {e}") from e

    try:
        raw = _decompress(payload, compression)
    except (OSError, EOFError, zlib.error, zstandard.ZstdError) as e:
        raise TileDataError(f"Could not decompress {compression} tile data: {e}") from e

    if len(raw) % GID_BYTE_SIZE:
        raise TileDataError(f"Tile data length {len(raw)} is not a multiple of {GID_BYTE_SIZE}")

    count = len(raw) // GID_BYTE_SIZE
    return list(struct.unpack(f'<{count}I', raw))


def layer_gids(layer: Dict[str, Any]) -> List[int]:
    """
    Every GID in a tile layer, chunks concatenated in document order.

    Args:
        layer: Tile layer dict as produced by the parser

    Returns:
        List of GIDs
    """
    encoding = layer.get('encoding')
    compression = layer.get('compression')

    if 'chunks' in layer:
        gids: List[int] = []
        for chunk in layer['chunks']:
            gids.extend(decode_tile_data(chunk['data'], encoding, compression))
        return gids

    if 'data' not in layer:
        return []

    gids = decode_tile_data(layer['data'], encoding, compression)
    expected = layer.get('width', 0) * layer.get('height', 0)
    if expected and len(gids) != expected:
        logger.warning(
            f"Layer '{layer.get('name', '')}' has {len(gids)} tiles, expected {expected}"
        )
    return gids
