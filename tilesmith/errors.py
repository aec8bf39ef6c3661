"""
Exception types raised by the parser and the packer.
"""

from typing import Any, Dict, List, Optional


class TilesmithError(Exception):
    """Base class for every error raised by tilesmith."""


class XmlSyntaxError(TilesmithError):
    """The input text is not well-formed XML."""


class StructuralError(TilesmithError):
    """A required element is missing or the document contradicts itself."""


class SchemaValidationError(TilesmithError):
    """A parsed element does not match its Tiled JSON schema."""

    def __init__(
        self,
        message: str,
        raw: Any = None,
        element: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None
    ):
        super().__init__(message)
        self.raw = raw
        self.element = element
        self.errors = errors or []


class EmptyInputError(TilesmithError):
    """The packer was asked to build an atlas without any sprites."""


class UnsupportedSliceGridError(TilesmithError):
    """A slice sprite does not describe a 3x3 nine-slice grid."""


class TileDataError(TilesmithError):
    """Tile layer data could not be decoded."""
